"""
Setup script for the Colony package.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# Read version from Colony/__init__.py
version = "1.0.0"
init_file = Path(__file__).parent / "Colony" / "__init__.py"
if init_file.exists():
    for line in init_file.read_text(encoding="utf-8").splitlines():
        if line.startswith("__version__"):
            version = line.split("=")[1].strip().strip('"').strip("'")
            break

setup(
    name="colony-ai",
    version=version,
    description="Cost optimization, quality validation and collective learning for agent swarms",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Colony Contributors",
    author_email="",
    packages=find_packages(include=["Colony", "Colony.*"]),
    include_package_data=True,
    entry_points={
        "console_scripts": [
            "colony=Colony.cli.__main__:main",
        ],
    },
    install_requires=[
        "numpy>=1.24.0",
        "pyyaml>=6.0",
        "rich>=13.0.0",
        "tiktoken>=0.5.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
            "pytest-mock>=3.12.0",
            "black>=23.12.0",
            "isort>=5.13.0",
            "flake8>=6.1.0",
            "mypy>=1.7.0",
        ],
    },
    python_requires=">=3.9",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
    ],
    keywords="multi-agent swarm cost-optimization code-quality collective-learning",
)
