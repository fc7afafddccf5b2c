"""Entity builders shared by the test modules."""

from datetime import date

from expense_tracker.db.repository import ExpenseEntity, ExpenseGroupEntity


def make_group(user_id="u1", title="Trip", status=1, description=None, expenses=None):
    return ExpenseGroupEntity(
        id=None,
        user_id=user_id,
        title=title,
        description=description,
        expense_group_status_id=status,
        expenses=expenses or [],
    )


def make_expense(amount=10.0, description="Taxi", day=date(2024, 3, 1)):
    return ExpenseEntity(id=None, description=description, date=day, amount=amount)
