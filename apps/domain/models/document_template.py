from django.db import models
from django.contrib.auth.models import User


class DocumentTemplate(models.Model):
    TYPE_CHOICES = [
        ('pdf', 'PDF'),
        ('online_form', 'Online Form'),
    ]

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, null=True)
    category = models.CharField(max_length=100, blank=True, null=True)
    template_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='pdf')
    file_path = models.CharField(max_length=500, blank=True, null=True)
    form_schema = models.JSONField(blank=True, null=True)
    requires_witness = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    expiry_months = models.PositiveIntegerField(
        blank=True,
        null=True,
        help_text='Months a signed copy stays valid; empty means it never lapses'
    )
    sort_order = models.IntegerField(default=0)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'document_templates'
        ordering = ['sort_order', 'name']

    def __str__(self):
        return self.name
