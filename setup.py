import os

from setuptools import find_packages, setup  # isort: skip


HERE = os.path.dirname(os.path.abspath(__file__))


def get_long_description():
    readme = os.path.join(HERE, "README.md")
    if not os.path.isfile(readme):
        return ""
    with open(readme, encoding="utf-8") as f:
        return f.read()


setup(
    name="dbtrace",
    version="0.1.0",
    description="OpenTelemetry tracing for database commands run through SQLAlchemy and DB-API drivers",
    long_description=get_long_description(),
    long_description_content_type="text/markdown",
    license="BSD-3-Clause",
    packages=find_packages(exclude=["tests*"]),
    zip_safe=False,
    python_requires=">=3.8",
    install_requires=[
        "envier~=0.5",
        "opentelemetry-api>=1.20",
        "opentelemetry-sdk>=1.20",
        "wrapt>=1.14",
    ],
    extras_require={
        "sqlalchemy": ["sqlalchemy>=1.4"],
        "pyodbc": ["pyodbc>=4.0.34"],
        "testing": [
            "pytest>=7",
            "sqlalchemy>=1.4",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3 :: Only",
        "Topic :: Database",
        "Topic :: System :: Monitoring",
    ],
)
