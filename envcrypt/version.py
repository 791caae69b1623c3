"""Envcrypt Meta information.
   Envcrypt keeps test-configuration secrets encrypted at rest inside
   plain-text environment files.
"""
__title__ = 'envcrypt'
__description__ = (
   'Envcrypt keeps configuration secrets encrypted at rest '
   'inside plain-text environment files.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2024 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/envcrypt'
