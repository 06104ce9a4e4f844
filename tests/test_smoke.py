"""Minimal smoke tests for the license compliance package."""


def test_package_importable() -> None:
    """Ensure the top-level package exposes the expected namespace."""
    import license_compliance  # noqa: F401  # Imported for side effects
    from license_compliance.cli import main  # noqa: F401

    assert license_compliance.__version__
