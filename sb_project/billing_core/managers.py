from django.db import models


# -----------------------------------------
# Scope queries to one school
# -----------------------------------------
class SchoolQuerySet(models.QuerySet):
    def for_school(self, school):
        return self.filter(school=school)


class SchoolScopedManager(models.Manager):
    def get_queryset(self):
        return SchoolQuerySet(self.model, using=self._db)

    def for_school(self, school):
        return self.get_queryset().for_school(school)


# -----------------------------------------
# Postings
# -----------------------------------------
class PostingQuerySet(SchoolQuerySet):
    def active(self):
        return self.filter(is_active=True)

    def for_employee(self, employee):
        return self.filter(employee=employee)

    def overlapping(self, start, end):
        """Postings in effect at any point of [start, end].

        Open postings (no end date) and closed ones whose end date falls
        on or after the period start both qualify.
        """
        return self.filter(start_date__lte=end).filter(
            models.Q(end_date__isnull=True) | models.Q(end_date__gte=start)
        )


class PostingManager(SchoolScopedManager):
    def get_queryset(self):
        return PostingQuerySet(self.model, using=self._db)

    def active(self):
        return self.get_queryset().active()

    def for_employee(self, employee):
        return self.get_queryset().for_employee(employee)


# -----------------------------------------
# Leave
# -----------------------------------------
class LeaveQuerySet(models.QuerySet):
    def deductible_between(self, employee, start, end):
        """Approved, deduction-eligible leave overlapping [start, end]."""
        return self.filter(
            employee=employee,
            status="approved",
            is_deductible=True,
            start_date__lte=end,
            end_date__gte=start,
        )


# -----------------------------------------
# Invoices
# -----------------------------------------
class InvoiceQuerySet(SchoolQuerySet):
    def live(self):
        """Every invoice that still counts towards period uniqueness."""
        return self.exclude(status="cancelled")

    def for_period(self, school, month, year):
        return self.filter(school=school, month=month, year=year)


class InvoiceManager(SchoolScopedManager):
    def get_queryset(self):
        return InvoiceQuerySet(self.model, using=self._db)

    def live(self):
        return self.get_queryset().live()

    def for_period(self, school, month, year):
        return self.get_queryset().for_period(school, month, year)
