"""Server bootstrap: schema migrations, sessions and the request pipeline."""

__version__ = "0.1.0"
