from setuptools import setup

setup(
    name='magicsocket-connector-py',
    version='0.1.0',
    description='Discovers a service with zeroconf and keeps a socket.io connection to it.',
    url='',
    author='',
    author_email='',
    license='LGPL',
    package_dir={'': 'src'},
    packages=['magicsocket', 'magicsocket.config', 'magicsocket.discovery', 'magicsocket.support',
              'magicsocket.transport'],
    package_data={'magicsocket.config': ['*.cfg']},
    python_requires='>=3.8',
    install_requires=[
        'zeroconf>=0.80',
        'python-socketio[client]>=5.0',
        'configobj>=5.0.9',
    ],
    extras_require={
        'test': ['pytest', 'PyHamcrest>=2.0'],
    },
    entry_points={
        'console_scripts': ['magicsocket-monitor=magicsocket.monitor:main'],
    },
    zip_safe=False,
)
