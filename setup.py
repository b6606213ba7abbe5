from setuptools import setup, find_packages

CORE_DEPS = [
    "yt-dlp",
    "curl_cffi",
    "playwright",
    "beautifulsoup4",
    "python-dotenv",
    "colorama",
    "fastapi",
    "uvicorn",
]

TEST_DEPS = [
    "pytest",
    "pytest-asyncio",
    "httpx",
]

setup(
    name="mediarelay",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=CORE_DEPS,
    extras_require={
        "test": TEST_DEPS,
    },
    python_requires=">=3.10",
    entry_points={
        "console_scripts": [
            "mediarelay=mediarelay.main:main",
        ],
    },
)
