#!/usr/bin/env python
from setuptools import setup, find_packages

with open("README.md", "r", encoding='utf-8') as fh:
    long_description = fh.read()

setup(
    name="ecs-run",
    version="0.1.0",
    description="Run a one-off AWS ECS task based on an existing service and fetch its logs",
    author="Caltech IMSS ADS",
    author_email="imss-ads-staff@caltech.edu",
    long_description=long_description,
    long_description_content_type="text/markdown",
    keywords=['aws', 'ecs', 'docker', 'devops'],
    classifiers=[
       "Programming Language :: Python :: 3"
    ],
    packages=find_packages(),
    include_package_data=True,
    install_requires=[
        "boto3 >= 1.17",
        "cement>=3.0.0",
        "click >= 6.7",
        "colorlog",
        "PyYAML >= 5.1",
        "tabulate >= 0.8.1",
        "tzlocal >= 4.0.1",
    ],
    extras_require={
        'test': [
            "pytest",
            "testfixtures",
        ]
    },
    entry_points={'console_scripts': [
        'ecs-run = ecsrun.main:main',
    ]}
)
