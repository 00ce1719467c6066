import decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Employee",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("employee_code", models.CharField(max_length=32, unique=True)),
                ("full_name", models.CharField(max_length=200)),
                ("designation", models.CharField(blank=True, max_length=100)),
                ("employment_status", models.CharField(choices=[("active", "Active"), ("resigned", "Resigned"), ("terminated", "Terminated")], default="active", max_length=12)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ("full_name",),
            },
        ),
        migrations.CreateModel(
            name="School",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("city", models.CharField(blank=True, max_length=100)),
                ("address", models.TextField(blank=True)),
                ("contact_person_name", models.CharField(blank=True, max_length=200)),
                ("mobile", models.CharField(blank=True, max_length=32)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("trainers_required", models.PositiveIntegerField(default=1)),
                ("status", models.CharField(choices=[("active", "Active"), ("inactive", "Inactive")], default="active", max_length=10)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("current_trainers", models.ManyToManyField(blank=True, related_name="current_schools", to="billing_core.employee")),
            ],
            options={
                "ordering": ("name",),
                "indexes": [models.Index(fields=["status"], name="school_status_idx")],
            },
        ),
        migrations.CreateModel(
            name="DocumentSequence",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("prefix", models.CharField(max_length=8)),
                ("year", models.PositiveSmallIntegerField()),
                ("month", models.PositiveSmallIntegerField()),
                ("last_value", models.PositiveIntegerField(default=0)),
            ],
            options={
                "constraints": [models.UniqueConstraint(fields=("prefix", "year", "month"), name="uq_document_sequence_scope")],
            },
        ),
        migrations.CreateModel(
            name="Holiday",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("date", models.DateField()),
                ("name", models.CharField(blank=True, max_length=100)),
                ("school", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="holidays", to="billing_core.school")),
            ],
            options={
                "ordering": ("date",),
                "constraints": [models.UniqueConstraint(fields=("date", "school"), name="uq_holiday_date_school")],
            },
        ),
        migrations.CreateModel(
            name="EmployeePosting",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("monthly_billing_salary", models.DecimalField(decimal_places=2, max_digits=12)),
                ("tds_percent", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=5)),
                ("gst_percent", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=5)),
                ("start_date", models.DateField()),
                ("end_date", models.DateField(blank=True, null=True)),
                ("status", models.CharField(choices=[("continue", "Continue"), ("change_school", "Change school"), ("resign", "Resign"), ("terminate", "Terminate")], default="continue", max_length=16)),
                ("is_active", models.BooleanField(default=False)),
                ("remark", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("employee", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="postings", to="billing_core.employee")),
                ("school", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="postings", to="billing_core.school")),
                ("updated_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "indexes": [
                    models.Index(fields=["employee", "is_active"], name="posting_employee_active_idx"),
                    models.Index(fields=["school", "is_active"], name="posting_school_active_idx"),
                    models.Index(fields=["status"], name="posting_status_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(condition=models.Q(("is_active", True)), fields=("employee",), name="uq_posting_one_active_per_employee"),
                    models.CheckConstraint(condition=models.Q(("monthly_billing_salary__gte", 0)), name="posting_non_negative_rate"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Leave",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("leave_type", models.CharField(choices=[("paid", "Paid"), ("unpaid", "Unpaid"), ("sick", "Sick"), ("casual", "Casual"), ("emergency", "Emergency")], max_length=10)),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("reason", models.TextField(blank=True)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("approved", "Approved"), ("rejected", "Rejected"), ("cancelled", "Cancelled")], default="pending", max_length=10)),
                ("is_deductible", models.BooleanField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("employee", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="leaves", to="billing_core.employee")),
                ("posting", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="leaves", to="billing_core.employeeposting")),
                ("school", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to="billing_core.school")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["employee", "start_date"], name="leave_employee_start_idx"),
                    models.Index(fields=["is_deductible"], name="leave_deductible_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("invoice_number", models.CharField(max_length=32, unique=True)),
                ("school_name", models.CharField(max_length=200)),
                ("month", models.PositiveSmallIntegerField()),
                ("year", models.PositiveSmallIntegerField()),
                ("subtotal", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14)),
                ("tds_percent", models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ("gst_percent", models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ("tds_amount", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14)),
                ("gst_amount", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14)),
                ("round_off", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14)),
                ("grand_total", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14)),
                ("previous_due", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14)),
                ("total_payable", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14)),
                ("paid_amount", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14)),
                ("balance_due", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14)),
                ("status", models.CharField(choices=[("draft", "Draft"), ("generated", "Generated"), ("verified", "Verified"), ("re_verified", "Re-verified"), ("sent", "Sent"), ("paid", "Paid"), ("overdue", "Overdue"), ("cancelled", "Cancelled")], default="generated", max_length=12)),
                ("is_locked", models.BooleanField(default=False)),
                ("invoice_date", models.DateField()),
                ("due_date", models.DateField()),
                ("notes", models.TextField(blank=True)),
                ("terms", models.CharField(default="Payment due within 30 days", max_length=200)),
                ("generated_at", models.DateTimeField(auto_now_add=True)),
                ("verified_at", models.DateTimeField(blank=True, null=True)),
                ("sent_at", models.DateTimeField(blank=True, null=True)),
                ("sent_document", models.JSONField(blank=True, null=True)),
                ("delivery_reference", models.CharField(blank=True, max_length=255)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("cancellation_reason", models.TextField(blank=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("cancelled_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("generated_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("school", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="invoices", to="billing_core.school")),
                ("sent_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("verified_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ("-year", "-month", "school_name"),
                "indexes": [
                    models.Index(fields=["status"], name="invoice_status_idx"),
                    models.Index(fields=["school", "status"], name="invoice_school_status_idx"),
                    models.Index(fields=["due_date"], name="invoice_due_date_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(condition=models.Q(("status", "cancelled"), _negated=True), fields=("school", "month", "year"), name="uq_live_invoice_school_period"),
                    models.CheckConstraint(condition=models.Q(("month__gte", 1), ("month__lte", 12)), name="invoice_month_range"),
                    models.CheckConstraint(condition=models.Q(("paid_amount__gte", 0), ("balance_due__gte", 0)), name="invoice_non_negative_balances"),
                ],
            },
        ),
        migrations.CreateModel(
            name="InvoiceLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("position", models.PositiveIntegerField(default=0)),
                ("employee_name", models.CharField(max_length=200)),
                ("employee_code", models.CharField(max_length=32)),
                ("designation", models.CharField(blank=True, max_length=100)),
                ("monthly_rate", models.DecimalField(decimal_places=2, max_digits=12)),
                ("deployed_days", models.PositiveSmallIntegerField()),
                ("leave_days", models.PositiveSmallIntegerField(default=0)),
                ("billable_days", models.PositiveSmallIntegerField()),
                ("working_days", models.PositiveSmallIntegerField()),
                ("per_day_rate", models.DecimalField(decimal_places=2, max_digits=12)),
                ("amount", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14)),
                ("tds_percent", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=5)),
                ("tds_amount", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14)),
                ("gst_percent", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=5)),
                ("gst_amount", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14)),
                ("join_date", models.DateField(blank=True, null=True)),
                ("leave_date", models.DateField(blank=True, null=True)),
                ("employee", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="invoice_lines", to="billing_core.employee")),
                ("invoice", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="billing_core.invoice")),
                ("posting", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="invoice_lines", to="billing_core.employeeposting")),
            ],
            options={
                "ordering": ("invoice", "position"),
                "constraints": [models.CheckConstraint(condition=models.Q(("amount__gte", 0)), name="invl_non_negative_amount")],
            },
        ),
        migrations.CreateModel(
            name="InvoiceAdjustment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("field", models.CharField(choices=[("tds_percent", "TDS %"), ("gst_percent", "GST %"), ("leave_days", "Leave days")], max_length=16)),
                ("original_value", models.DecimalField(decimal_places=2, max_digits=12, null=True)),
                ("new_value", models.DecimalField(decimal_places=2, max_digits=12)),
                ("reason", models.TextField(blank=True)),
                ("adjusted_at", models.DateTimeField(auto_now_add=True)),
                ("adjusted_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("invoice", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="adjustments", to="billing_core.invoice")),
                ("line", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="adjustments", to="billing_core.invoiceline")),
            ],
            options={
                "ordering": ("adjusted_at", "id"),
            },
        ),
        migrations.CreateModel(
            name="InvoiceVerification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("status", models.CharField(max_length=12)),
                ("changes", models.JSONField(default=list)),
                ("notes", models.TextField(blank=True)),
                ("verified_at", models.DateTimeField(auto_now_add=True)),
                ("invoice", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="verification_history", to="billing_core.invoice")),
                ("verified_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ("verified_at", "id"),
            },
        ),
        migrations.CreateModel(
            name="SchoolLedger",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("current_balance", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("school", models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name="ledger", to="billing_core.school")),
            ],
        ),
        migrations.CreateModel(
            name="LedgerEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("sequence", models.PositiveIntegerField()),
                ("entry_type", models.CharField(choices=[("invoice", "Invoice generated"), ("payment", "Payment received"), ("adjustment", "Adjustment"), ("memo", "Memo")], max_length=12)),
                ("date", models.DateField()),
                ("month", models.PositiveSmallIntegerField()),
                ("year", models.PositiveSmallIntegerField()),
                ("debit", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14)),
                ("credit", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14)),
                ("balance", models.DecimalField(decimal_places=2, max_digits=14)),
                ("reference_type", models.CharField(blank=True, max_length=20)),
                ("reference_id", models.BigIntegerField(blank=True, null=True)),
                ("reference_number", models.CharField(blank=True, max_length=32)),
                ("description", models.CharField(blank=True, max_length=255)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("ledger", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="entries", to="billing_core.schoolledger")),
            ],
            options={
                "ordering": ("ledger", "sequence"),
                "indexes": [
                    models.Index(fields=["ledger", "date"], name="ledger_entry_date_idx"),
                    models.Index(fields=["reference_type", "reference_id"], name="ledger_entry_reference_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("ledger", "sequence"), name="uq_ledger_entry_sequence"),
                    models.CheckConstraint(condition=models.Q(("debit__gte", 0), ("credit__gte", 0)), name="ledger_entry_non_negative_sides"),
                ],
            },
        ),
        migrations.CreateModel(
            name="LedgerMonthlySummary",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("month", models.PositiveSmallIntegerField()),
                ("year", models.PositiveSmallIntegerField()),
                ("opening_balance", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14)),
                ("total_invoiced", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14)),
                ("total_paid", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14)),
                ("net_adjustments", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14)),
                ("closing_balance", models.DecimalField(decimal_places=2, default=decimal.Decimal("0.00"), max_digits=14)),
                ("ledger", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="monthly_summaries", to="billing_core.schoolledger")),
            ],
            options={
                "ordering": ("ledger", "year", "month"),
                "constraints": [models.UniqueConstraint(fields=("ledger", "year", "month"), name="uq_ledger_summary_period")],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("payment_number", models.CharField(max_length=32, unique=True)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=14)),
                ("payment_date", models.DateField()),
                ("method", models.CharField(choices=[("cash", "Cash"), ("cheque", "Cheque"), ("bank_transfer", "Bank transfer"), ("online", "Online"), ("dd", "Demand draft")], max_length=16)),
                ("reference_number", models.CharField(blank=True, max_length=64)),
                ("bank_name", models.CharField(blank=True, max_length=100)),
                ("branch", models.CharField(blank=True, max_length=100)),
                ("remarks", models.TextField(blank=True)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("cleared", "Cleared"), ("bounced", "Bounced")], default="pending", max_length=10)),
                ("remaining_balance", models.DecimalField(decimal_places=2, max_digits=14)),
                ("verified_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("invoice", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="billing_core.invoice")),
                ("received_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("school", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="billing_core.school")),
                ("verified_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ("-payment_date", "-id"),
                "indexes": [
                    models.Index(fields=["school", "payment_date"], name="payment_school_date_idx"),
                    models.Index(fields=["status"], name="payment_status_idx"),
                ],
                "constraints": [models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="payment_positive_amount")],
            },
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(max_length=50)),
                ("object_type", models.CharField(max_length=100)),
                ("object_id", models.CharField(max_length=100)),
                ("changes", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("school", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="audit_logs", to="billing_core.school")),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "indexes": [
                    models.Index(fields=["school", "created_at"], name="auditlog_school_created_idx"),
                    models.Index(fields=["object_type", "object_id"], name="auditlog_object_idx"),
                ],
            },
        ),
    ]
