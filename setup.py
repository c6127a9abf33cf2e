import setuptools

with open("README.md", "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name='datasprint',
    version='0.1.0',
    author="DataSprint",
    description="Challenge platform core: file submission relay, scoring state, badges and leaderboard.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(include=['datasprint', 'datasprint.*']),
    # Core dependencies required for datasprint functionality
    install_requires=[
        'pandas',            # Leaderboard frames and CSV export
        'requests',          # HTTP client for the object relay
        'boto3',             # AWS SDK for S3 uploads and the DynamoDB document store
        'shortuuid',         # Document ids and unique object keys
        'fastapi',           # Object relay HTTP service
        'uvicorn',           # ASGI server for the relay
        'python-multipart',  # Multipart form parsing for relay uploads
    ],
    extras_require={
        'test': ['pytest', 'httpx'],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: Other/Proprietary License",
        "Operating System :: OS Independent",
    ],
    python_requires='>=3.10',
    include_package_data=True,
    )
