"""Setup script for mg-transfer."""

from setuptools import setup, find_packages
from pathlib import Path

# Read README file
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text() if (this_directory / "README.md").exists() else ""

# Version lives in the package
version = {}
exec((this_directory / "src" / "mgtransfer" / "_version.py").read_text(), version)

setup(
    name="mg-transfer",
    version=version["__version__"],
    description="Geometric multigrid coarse-level construction and grid transfers for 27-point stencil problems on GPUs",
    long_description=long_description,
    long_description_content_type="text/markdown",

    packages=find_packages(where="src"),
    package_dir={"": "src"},

    python_requires=">=3.8",
    install_requires=[
        "numpy>=1.21.0",
        "scipy>=1.9.0",
        "matplotlib>=3.5.0",
        "pyyaml>=6.0",
    ],

    extras_require={
        "gpu": [
            "cupy>=11.0.0",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
        ],
    },

    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Mathematics",
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
        "Environment :: GPU :: NVIDIA CUDA",
    ],

    keywords=[
        "multigrid", "hpcg", "prolongation", "restriction", "sparse",
        "gpu", "cuda", "high-performance-computing",
    ],

    entry_points={
        "console_scripts": [
            "mg-transfer=mgtransfer.cli:main",
        ],
    },

    zip_safe=False,
)
