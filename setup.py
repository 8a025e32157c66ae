from setuptools import setup, find_packages
from pathlib import Path

description = "Python tool configuring smart card (CAC) authentication in "\
    "Firefox and Chrome NSS databases."

here = Path(__file__).parent  # return directory of current file
readme = Path(here, "README.md")
requirements = Path(here, "requirements.txt")

with requirements.open() as f:
    reqs = f.readlines()

with readme.open() as f:
    long_description = f.read()

setup(
    name="CACSetup",
    version="1.0.0",
    description=description,
    long_description=long_description,
    long_description_content_type='text/markdown',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Environment :: Console',
        'Framework :: Pytest',
        'Intended Audience :: System Administrators',
        'Operating System :: POSIX :: Linux',
        'Topic :: Security :: Cryptography',
        'Topic :: System :: Systems Administration',
    ],
    packages=find_packages(exclude=["test", "test.*"]),
    python_requires='>=3.9',
    install_requires=reqs,
    extras_require={
        'test': ["pytest", "pytest-env"]
    },
    include_package_data=True,
    tests_require=["pytest", "pytest-env"],
    entry_points={
        "console_scripts": ["cac-setup=CACSetup.cli_commands:cli"]
    }
)
