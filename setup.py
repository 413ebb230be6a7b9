from setuptools import setup


setup(
    name="sheet-tally",
    version="0.1.0",
    description="Sum the Total column of a CSV, add gratuity, and write a formatted Excel report",
    packages=["sheet_tally"],
    python_requires=">=3.9",
    install_requires=[
        "chardet",
        "openpyxl",
        "pandas",
        "streamlit",
    ],
    entry_points={
        "console_scripts": [
            "sheet-tally=sheet_tally.cli:main",
        ]
    },
)
