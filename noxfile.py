"""Installs logweaver and runs its tests with Python 3.11 - 3.13

Use this file with the `nox` tool to run logweaver with all specified versions
of Python. For more information, see: https://nox.thea.codes/en/stable/
"""
import nox


@nox.session(python=["3.11", "3.12", "3.13"])
def smoke_test(session):
    session.install(".")
    session.run("logweaver", "-h")
    session.run("logweaver", "--show-default-config")


@nox.session(python=["3.11", "3.12", "3.13"])
def tests(session):
    session.install(".[test]")
    session.run("pytest", *session.posargs)
