"""Install the file sharing gatekeeper."""

from setuptools import setup, find_packages

setup(
    name='filesharing-gatekeeper',
    version='0.1.0',
    packages=find_packages(exclude=['*test*']),
    py_modules=['wsgi'],
    package_data={'gatekeeper': ['templates/gatekeeper/*.html',
                                 'templates/mail/*.html']},
    install_requires=[
        "authlib",
        "bcrypt",
        "email-validator",
        "fakeredis",
        "flask",
        "flask-sqlalchemy",
        "pyjwt",
        "python-dateutil",
        "python-json-logger",
        "pytz",
        "redis",
        "requests",
        "sqlalchemy",
        "werkzeug",
        "wtforms",
    ],
    extras_require={
        'test': ["mimesis", "pytest"],
    },
    zip_safe=False
)
