import datetime
from decimal import Decimal

from ..dto import PostingRequest
from ..models import Employee, Leave, School
from ..services.postings import open_posting

# 6..31 March is 26 days: one full fixed working month
MARCH_START = datetime.date(2024, 3, 6)


def make_school(name="Green Valley School", **kwargs):
    kwargs.setdefault("city", "Pune")
    kwargs.setdefault("email", "accounts@greenvalley.test")
    return School.objects.create(name=name, **kwargs)


def make_employee(code="EMP-001", name="Asha Patil", **kwargs):
    kwargs.setdefault("designation", "Robotics Trainer")
    return Employee.objects.create(employee_code=code, full_name=name, **kwargs)


def post(employee, school, rate="30000.00", start=MARCH_START,
         status="continue", user=None, **kwargs):
    """Open a posting through the lifecycle service."""
    return open_posting(
        PostingRequest(
            employee_id=employee.pk,
            school_id=school.pk,
            monthly_billing_salary=Decimal(rate),
            start_date=start,
            status=status,
            **kwargs,
        ),
        user=user,
    )


def approved_leave(employee, start, end, leave_type="unpaid", **kwargs):
    kwargs.setdefault("status", "approved")
    return Leave.objects.create(
        employee=employee, leave_type=leave_type,
        start_date=start, end_date=end, **kwargs,
    )
