"""
MediaFlow setup.py — Package configuration and CLI entry point.
"""

from setuptools import find_packages, setup

setup(
    name="mediaflow",
    version="1.0.0",
    description="MediaFlow — Folder access control and editorial workflow for media libraries",
    packages=find_packages(include=["mediaflow", "mediaflow.*"]),
    python_requires=">=3.11",
    entry_points={
        "console_scripts": [
            "mediaflow=mediaflow.cli:main",
        ],
    },
    install_requires=[
        "sqlalchemy>=2.0",
        "pydantic>=2.5",
        "redis>=5.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
        ],
    },
)
