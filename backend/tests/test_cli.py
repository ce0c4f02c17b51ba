"""CLI command tests (flask emi / rates / users)."""

from datetime import timedelta

from karat.models import EmiInstallment, User
from karat.models.emi import EMI_OVERDUE
from karat.services import emi_service
from karat.time_utils import utcnow


def test_mark_overdue_command_is_repeatable(app, db_session, shop, customer, metrics):
    emi_service.create_emi_plan(shop.id, customer.id, "9000.00", 3, utcnow().date() - timedelta(days=40))
    runner = app.test_cli_runner()

    first = runner.invoke(args=["emi", "mark-overdue", "--shop-id", str(shop.id)])
    second = runner.invoke(args=["emi", "mark-overdue", "--shop-id", str(shop.id)])

    assert first.exit_code == 0, first.output
    assert "Marked 2 installment(s) and 1 plan(s)" in first.output
    assert "Marked 0 installment(s) and 0 plan(s)" in second.output
    assert db_session.query(EmiInstallment).filter_by(status=EMI_OVERDUE).count() == 2
    assert metrics.count("emi.installments.marked_overdue") == 2


def test_rates_list(app, db_session, shop, gold_rate):
    result = app.test_cli_runner().invoke(args=["rates", "list", "--shop-id", str(shop.id)])
    assert result.exit_code == 0
    assert "GOLD" in result.output
    assert "6000.00" in result.output


def test_users_create_rejects_weak_password(app, db_session, shop):
    result = app.test_cli_runner().invoke(args=[
        "users", "create", "--shop-id", str(shop.id), "--username", "ravi",
        "--email", "ravi@main.local", "--password", "weak",
    ])
    assert result.exit_code != 0
    assert "Password validation failed" in result.output
    assert db_session.query(User).filter_by(username="ravi").count() == 0
