from setuptools import setup, find_packages

setup(
    name="bigquery-flash-sync",
    version="0.2.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["main"],
    python_requires=">=3.9",
    install_requires=[
        "loguru",
        "sqlalchemy>=1.4",
        "pymysql",
        "psycopg2-binary",
        "pyodbc",
        "google-cloud-bigquery",
    ],
    extras_require={
        "test": ["pytest"],
    },
)
