from invoke import task


@task
def lint(c):
    c.run("ruff check .")


@task
def format_check(c):
    c.run("ruff format --check .")


@task
def test(c):
    c.run("pytest")


@task
def seed(c, db="./esports_hub.duckdb"):
    c.run("python scripts/seed_local_backend.py", env={"ESPORTS_HUB_DB": db})


@task
def ci(c):
    lint(c)
    format_check(c)
    test(c)
