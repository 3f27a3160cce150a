from setuptools import setup, find_packages
import os

# Long description from README.md
def read_readme():
    readme_path = os.path.join(os.path.dirname(__file__), 'README.md')
    if os.path.exists(readme_path):
        with open(readme_path, 'r', encoding='utf-8') as f:
            return f.read()
    return "Python SDK for coordinating a dual-arm robot cell."

# Runtime dependencies from requirements.txt
def read_requirements():
    requirements_path = os.path.join(os.path.dirname(__file__), 'requirements.txt')
    if os.path.exists(requirements_path):
        with open(requirements_path, 'r', encoding='utf-8') as f:
            return [line.strip() for line in f if line.strip() and not line.startswith('#')]
    return []

setup(
    name='dualarm_cell_sdk',
    version="0.1.0",
    author='Synria Robotics',
    author_email='tech@xuanyatech.com',
    description='Python SDK for streaming control, motion retries and pick/place on a dual-arm robot cell',
    long_description=read_readme(),
    long_description_content_type='text/markdown',
    packages=find_packages(exclude=['tests*', 'examples*']),
    package_data={'dualarm_cell_sdk': ['config/*.yaml']},
    include_package_data=True,
    install_requires=read_requirements(),
    extras_require={
        'test': ['pytest'],
    },
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'Intended Audience :: Science/Research',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Operating System :: OS Independent',
        'Topic :: Software Development :: Libraries :: Python Modules',
        'Topic :: Scientific/Engineering',
    ],
    python_requires='>=3.8',
    keywords='dual-arm robot, robot cell, motion planning, pick and place, sdk',
)
