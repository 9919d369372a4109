from setuptools import setup


setup(
    name="dbf-forge",
    version="0.3.0",
    description="Convert spreadsheets and delimited text into strictly typed DBF, XLSX or CSV tables with a per-cell audit trail",
    packages=["dbf_forge", "dbf_forge.readers", "dbf_forge.export"],
    python_requires=">=3.9",
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
        "xlrd",
        "lxml",
        "dbf",
        "dbfread",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "dbf-forge=dbf_forge.cli:main",
        ]
    },
)
