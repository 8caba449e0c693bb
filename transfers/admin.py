from django.contrib import admin

from .models import (
    Checklist,
    ChecklistExpense,
    Driver,
    Order,
    OrderHandoff,
    OrderSegment,
)

admin.site.register(Driver)
admin.site.register(Order)
admin.site.register(Checklist)
admin.site.register(ChecklistExpense)
admin.site.register(OrderHandoff)
admin.site.register(OrderSegment)
