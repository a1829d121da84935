#!/usr/bin/env python3
from setuptools import setup, find_packages

setup(
    name="plot3dvtk",
    version="1.0.0",
    description="Plot3D structured grid reader and VTK XML unstructured grid writer",
    author="HJA Bird",
    package_dir={"": "src"},
    packages=find_packages("src"),
    include_package_data=True,
    python_requires=">=3.8",
    install_requires=[
        "numpy>=1.20.0",
    ],
    extras_require={
        "test": ["meshio>=5.0.0"],
    },
    entry_points={
        "console_scripts": [
            "plot3d2vtu=plot3dvtk.cli.app:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Topic :: Scientific/Engineering",
    ],
)
