from django import forms

from .models import Ticket


class TicketForm(forms.ModelForm):

    class Meta:
        model = Ticket
        fields = ["title", "description", "project", "assigned_to", "status", "priority", "due_date"]


class CommentForm(forms.Form):
    text = forms.CharField(error_messages={"required": "Comment cannot be empty."})
