from setuptools import setup

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="childcare-pro",
    version="1.0.0",
    description="ChildCare Pro - multi-tenant childcare center management",
    long_description=long_description,
    long_description_content_type="text/markdown",
    py_modules=[
        'access_control',
        'app',
        'app_models',
        'build',
        'cacfp',
        'compliance',
        'data_isolation_helpers',
        'forms',
        'gunicorn_config',
        'health',
        'leads',
        'milk_calculator',
        'plans',
        'portal_tokens',
        'production_config',
        'program_billing',
        'program_income',
        'report_export',
        'security',
        'tuition_billing',
    ],
    packages=['controllers'],
    include_package_data=True,
    install_requires=[
        'Flask==2.3.3',
        'Flask-SQLAlchemy==3.0.5',
        'Flask-WTF==1.2.1',
        'python-dotenv==1.0.0',
        'SQLAlchemy==2.0.43',
        'WTForms==3.0.1',
        'Werkzeug==2.3.7',
        'gunicorn==21.2.0',
        'psycopg2-binary==2.9.9',
        'bcrypt==4.0.1',
        'python-jose==3.3.0',
    ],
    extras_require={
        'test': ['pytest>=7.4'],
    },
    python_requires='>=3.9',
    classifiers=[
        "Programming Language :: Python :: 3",
        "Framework :: Flask",
        "Operating System :: OS Independent",
    ],
    entry_points={
        'console_scripts': [
            'childcare-pro=app:main',
        ],
    },
)
