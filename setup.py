"""
Setup file.
"""

import os

from setuptools import find_packages, setup

URL = "https://github.com/nasa/cFS"
KEYWORDS = "cfs flight-software build cross-compile toolchain embedded"
HERE = os.path.dirname(os.path.abspath(__file__))
VERSION = "0.1.0"


if __name__ == "__main__":
    setup(
        name="fswbuild",
        version=VERSION,
        description="Per-architecture build orchestration for cFS flight software missions",
        keywords=KEYWORDS,
        url=URL,
        python_requires=">=3.8",
        package_dir={"": "src"},
        packages=find_packages(where="src"),
        install_requires=[
            "psutil>=5.9.0",
            "tqdm>=4.66.0",
        ],
        extras_require={
            "test": [
                "pytest>=7.0",
            ],
        },
        entry_points={
            "console_scripts": [
                "fswb=fswbuild.cli:main",
            ],
        },
        include_package_data=True,
    )
