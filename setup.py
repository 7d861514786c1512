import os
import re
from codecs import open

from setuptools import find_packages
from setuptools import setup

# Based on https://github.com/pypa/sampleproject/blob/main/setup.py
# and https://python-packaging-user-guide.readthedocs.org/

here = os.path.abspath(os.path.dirname(__file__))

with open(os.path.join(here, "README.md"), encoding="utf-8") as f:
    long_description = f.read()
long_description_content_type = "text/markdown"

with open(os.path.join(here, "httpclient/version.py")) as f:
    match = re.search(r'VERSION = "(.+?)"', f.read())
    assert match
    VERSION = match.group(1)

setup(
    name="httpclient",
    version=VERSION,
    description="A small blocking HTTP/1.1 client with CONNECT proxy tunneling and TLS.",
    long_description=long_description,
    long_description_content_type=long_description_content_type,
    license="MIT",
    classifiers=[
        "License :: OSI Approved :: MIT License",
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: Implementation :: CPython",
        "Topic :: Internet :: WWW/HTTP",
        "Topic :: Software Development :: Libraries",
    ],
    packages=find_packages(
        include=[
            "httpclient",
            "httpclient.*",
        ]
    ),
    include_package_data=True,
    entry_points={
        "console_scripts": [
            "httpclient = httpclient.tools.main:main",
        ],
    },
    python_requires=">=3.10",
    # https://packaging.python.org/en/latest/discussions/install-requires-vs-requirements/#install-requires
    # It is not considered best practice to use install_requires to pin dependencies to specific versions.
    install_requires=[
        "certifi>=2019.9.11",  # no semver here - this should always be on the last release!
        "pyOpenSSL>=22.1",
    ],
    extras_require={
        "dev": [
            "cryptography>=38.0",
            "pytest-timeout>=1.3.3",
            "pytest>=6.1.0",
        ],
    },
)
