from setuptools import setup, find_packages
import os

version = "0.3.0"
if os.path.exists("VERSION"):
    with open("VERSION", "r") as f:
        version = f.read().strip()

setup(
    name="copernica_client",
    version=version,
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "requests>=2.25.0",
        "PyYAML>=6.0",
        "tzdata"
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
)
