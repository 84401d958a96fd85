""" sigaudit build script for setuptools.

"""

from setuptools import find_packages, setup  # type: ignore

import sigaudit

with open("README.md", "r", encoding="ascii") as file_:
    longdescription = file_.read()

setup(
    name=sigaudit.name,
    version=sigaudit.__version__,
    license=sigaudit.__license__,
    author=sigaudit.__author__,
    author_email=sigaudit.__author_email__,
    description="ECDSA signature security analysis: DER, nonce reuse, malleability",
    long_description=longdescription,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    package_data={"sigaudit": ["_data/*.json"]},
    install_requires=["dataclasses_json"],
    extras_require={
        "secp256k1": ["btclib_libsecp256k1"],
        "test": ["pytest", "coincurve"],
    },
    keywords=(
        "bitcoin cryptography elliptic-curves ecdsa DER BER BIP66 BIP62 "
        "malleability nonce-reuse key-recovery wycheproof CVE-2024-42461"
    ),
    python_requires=">=3.8",
    classifiers=[
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Natural Language :: English",
        "Operating System :: OS Independent",
        "Topic :: Security :: Cryptography",
        "Topic :: Scientific/Engineering",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
)
