"""
SQLMirror - SQL Server Schema Mirroring
Install: pip install -e .
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="sqlmirror",
    version="1.0.0",
    author="SQLMirror contributors",
    author_email="",
    description="Mirror a SQL Server schema into idempotent, version-controlled .sql scripts",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Database",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=[
        "sqlalchemy>=2.0.0",
        "pydantic>=2.0.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "mssql": [
            "pyodbc>=4.0",
        ],
        "dev": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "sqlmirror=sqlmirror.__main__:main",
        ],
    },
    keywords="sql-server, mssql, schema, ddl, migrations, version-control",
)
