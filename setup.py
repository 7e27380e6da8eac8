"""Setup script for the lattice package."""

from setuptools import setup, find_packages

setup(
    name="lattice-coordination",
    version="0.1.0",
    packages=find_packages(include=["lattice", "lattice.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
        "structlog>=23.2",
        "prometheus-client>=0.19",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    description="Lattice - policy-validated multi-executor coordination core",
    author="Lattice Team",
)
