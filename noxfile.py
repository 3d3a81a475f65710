import nox

PYTHON_VERSIONS = ["3.11", "3.12", "3.13"]

# Packages with C extensions that must be rebuilt per Python version.
# Poetry's wheel cache can serve a .so compiled for the wrong interpreter.
_C_EXT_PACKAGES = ["psycopg2"]


def _install(session: nox.Session) -> None:
    """Install the project with the test extra into the nox virtualenv."""
    session.run("poetry", "install", "--all-extras", external=True)
    session.run(
        "pip",
        "install",
        "--force-reinstall",
        "--no-cache-dir",
        *_C_EXT_PACKAGES,
    )


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Run the full test suite across Python versions."""
    _install(session)
    session.run("pytest", *session.posargs)


@nox.session(python=PYTHON_VERSIONS)
def tests_domain(session: nox.Session) -> None:
    """Aggregate and value-object tests only (no command processing)."""
    _install(session)
    session.run("pytest", "tests/domain/")


@nox.session(python=PYTHON_VERSIONS)
def tests_flows(session: nox.Session) -> None:
    """Command handlers and BDD scenarios against the in-memory adapters."""
    _install(session)
    session.run("pytest", "tests/application/", "tests/bdd/")


@nox.session(python=PYTHON_VERSIONS)
def tests_integration(session: nox.Session) -> None:
    """HTTP endpoints and gateway adapters."""
    _install(session)
    session.run("pytest", "tests/integration/")


@nox.session(python="3.13")
def tests_sqlite(session: nox.Session) -> None:
    """Full suite against the SQLite overlay in domain.toml."""
    _install(session)
    session.run("pytest", "--env", "sqlite")
