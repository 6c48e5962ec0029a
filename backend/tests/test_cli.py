from decimal import Decimal

from pasal.extensions import db
from pasal.models import Customer, Product


def test_seed_is_idempotent(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["pasal", "seed"])
    assert result.exit_code == 0, result.output
    assert "PASS Created product Instant Noodles" in result.output

    result = runner.invoke(args=["pasal", "seed"])
    assert "SKIP Demo product already exists" in result.output
    assert db.session.query(Product).count() == 1
    # 4 boxes of 30
    assert db.session.query(Product).one().quantity == Decimal("120")


def test_check_balances_reports_and_fixes(app, customer):
    customer.balance = Decimal("12.50")
    db.session.commit()
    runner = app.test_cli_runner()

    result = runner.invoke(args=["pasal", "check-balances"])
    assert "FAIL Customer" in result.output

    result = runner.invoke(args=["pasal", "check-balances", "--fix"])
    assert "PASS Fixed 1 balance(s)" in result.output
    db.session.expire_all()
    assert db.session.get(Customer, customer.id).balance == 0
