"""
Re-prompting input helpers for the terminal front end.
"""
import re
from datetime import date


def matches(pattern):
    compiled = re.compile(pattern)
    return lambda value: compiled.fullmatch(value) is not None


def not_blank(value):
    return bool(value.strip())


NAME = matches(r'[A-Za-z ]+')
PHONE = matches(r'\d{10}')
NATIONAL_ID = matches(r'\d{12}')
POSTAL_CODE = matches(r'\d{6}')
USERNAME = matches(r'[A-Za-z0-9_]+')


class Prompter:
    """
    Asks until the answer is valid.

    ``write`` prints a line, ``read`` behaves like ``input()``; both are
    injectable so the menus can be driven from tests.
    """

    def __init__(self, write, read=input):
        self.write = write
        self.read = read

    def text(self, prompt, validator=None, error='Invalid input'):
        while True:
            value = self.read(prompt).strip()
            if validator is None or validator(value):
                return value
            self.write(error)

    def integer(self, prompt, minimum, maximum):
        while True:
            raw = self.read(prompt).strip()
            try:
                value = int(raw)
            except ValueError:
                self.write('Invalid number format')
                continue
            if minimum <= value <= maximum:
                return value
            self.write(f'Please enter a number between {minimum} and {maximum}')

    def yes_no(self, prompt):
        while True:
            value = self.read(prompt).strip().upper()
            if value in ('Y', 'YES'):
                return True
            if value in ('N', 'NO'):
                return False
            self.write('Please enter Y or N')

    def date(self, prompt):
        while True:
            raw = self.read(prompt).strip()
            try:
                return date.fromisoformat(raw)
            except ValueError:
                self.write('Invalid date format. Please use YYYY-MM-DD')

    def choice(self, prompt, options, error='Invalid choice'):
        """Case-insensitive pick from ``options``; returns the matching option."""
        lookup = {option.upper(): option for option in options}
        while True:
            value = self.read(prompt).strip().upper()
            if value in lookup:
                return lookup[value]
            self.write(error)
