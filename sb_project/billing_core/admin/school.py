from django.contrib import admin

from billing_core.models import Employee, EmployeePosting, Holiday, Leave, School


@admin.register(Employee)
class EmployeeAdmin(admin.ModelAdmin):
    list_display = ("employee_code", "full_name", "designation", "employment_status")
    list_filter = ("employment_status",)
    search_fields = ("employee_code", "full_name")


@admin.register(School)
class SchoolAdmin(admin.ModelAdmin):
    list_display = ("name", "city", "trainers_required", "status")
    list_filter = ("status", "city")
    search_fields = ("name", "city")
    # roster is derived from postings
    readonly_fields = ("current_trainers",)


@admin.register(EmployeePosting)
class EmployeePostingAdmin(admin.ModelAdmin):
    """Postings are opened and closed through the posting services."""
    list_display = (
        "employee", "school", "status", "is_active", "monthly_billing_salary",
        "start_date", "end_date",
    )
    list_filter = ("status", "is_active")
    search_fields = ("employee__full_name", "employee__employee_code", "school__name")

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Holiday)
class HolidayAdmin(admin.ModelAdmin):
    list_display = ("date", "name", "school")
    list_filter = ("school",)


@admin.register(Leave)
class LeaveAdmin(admin.ModelAdmin):
    list_display = ("employee", "leave_type", "start_date", "end_date", "status", "is_deductible")
    list_filter = ("status", "leave_type", "is_deductible")
    search_fields = ("employee__full_name",)
