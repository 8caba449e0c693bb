# forms.py
from django import forms

from .models import ChecklistExpense
from .services.finance import BUCKETS


class HandoffForm(forms.Form):
    """Where the vehicle is parked for the next driver."""

    location = forms.CharField(max_length=255)
    notes = forms.CharField(required=False, widget=forms.Textarea(attrs={"rows": 3}))
    latitude = forms.DecimalField(
        required=False, max_digits=9, decimal_places=6, min_value=-90, max_value=90
    )
    longitude = forms.DecimalField(
        required=False, max_digits=9, decimal_places=6, min_value=-180, max_value=180
    )

    def clean_location(self):
        location = self.cleaned_data["location"].strip()
        if not location:
            raise forms.ValidationError("Location is required.")
        return location


class ShuttleForm(forms.Form):
    location = forms.CharField(max_length=255)
    notes = forms.CharField(required=False, widget=forms.Textarea(attrs={"rows": 3}))


class SegmentPriceForm(forms.Form):
    price = forms.DecimalField(max_digits=10, decimal_places=2, min_value=0)


class SegmentRejectForm(forms.Form):
    reason = forms.CharField(widget=forms.Textarea(attrs={"rows": 3}))


class ExpenseForm(forms.ModelForm):
    class Meta:
        model = ChecklistExpense
        fields = ["type", "amount", "note", "receipt_url"]
        widgets = {
            "note": forms.Textarea(attrs={"rows": 2}),
        }


class CancelOrderForm(forms.Form):
    reason = forms.CharField(required=False, widget=forms.Textarea(attrs={"rows": 3}))


class AssignDriverForm(forms.Form):
    driver = forms.IntegerField(min_value=1)


class ProfitReportForm(forms.Form):
    date_from = forms.DateField()
    date_to = forms.DateField()
    bucket = forms.ChoiceField(
        required=False, choices=[("", "None")] + [(b, b.title()) for b in BUCKETS]
    )

    def clean(self):
        cleaned = super().clean()
        start, end = cleaned.get("date_from"), cleaned.get("date_to")
        if start and end and start > end:
            raise forms.ValidationError("Start date must be before the end date.")
        return cleaned
