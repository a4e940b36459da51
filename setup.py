#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""pyTUDA setup script"""
import os.path as op

from setuptools import find_packages, setup


def _read_about():
    about = {}
    with open(op.join(op.dirname(op.abspath(__file__)), "pyTUDA", "__about__.py")) as f:
        exec(f.read(), about)
    return about


if __name__ == "__main__":
    about = _read_about()
    setup(
        name=about["__packagename__"],
        version=about["__version__"],
        description=about["__description__"],
        packages=find_packages(include=["pyTUDA", "pyTUDA.*"]),
        python_requires=">=3.9",
        install_requires=about["__requires__"],
        extras_require={"tests": about["__tests_require__"]},
        zip_safe=False,
    )
