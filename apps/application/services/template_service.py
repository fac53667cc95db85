import logging
from typing import Dict, List, Optional
from django.contrib.auth.models import User
from apps.domain.exceptions import NotFound, SigningValidationError
from apps.domain.models import DocumentTemplate

logger = logging.getLogger('apps')

EDITABLE_FIELDS = (
    'name',
    'description',
    'category',
    'template_type',
    'file_path',
    'form_schema',
    'requires_witness',
    'expiry_months',
    'sort_order',
    'is_active',
)

# Fixed once the template is referenced by a signing request
CONTENT_FIELDS = ('template_type', 'file_path', 'form_schema', 'requires_witness')


class TemplateService:
    def list_templates(self, category: Optional[str] = None, include_inactive: bool = False) -> List[DocumentTemplate]:
        queryset = DocumentTemplate.objects.all().order_by('sort_order', 'name')
        if not include_inactive:
            queryset = queryset.filter(is_active=True)
        if category:
            queryset = queryset.filter(category=category)
        return list(queryset)

    def get_template(self, template_id: int) -> DocumentTemplate:
        try:
            return DocumentTemplate.objects.get(pk=template_id)
        except DocumentTemplate.DoesNotExist:
            raise NotFound('Template not found')

    def get_active_template(self, template_id: int) -> DocumentTemplate:
        template = self.get_template(template_id)
        if not template.is_active:
            raise SigningValidationError('Template is not active')
        return template

    def create_template(self, data: Dict, created_by: Optional[User] = None) -> DocumentTemplate:
        if not data.get('name') or not data.get('template_type'):
            raise SigningValidationError('Name and template_type are required')

        template = DocumentTemplate.objects.create(
            created_by=created_by,
            **{field: data[field] for field in EDITABLE_FIELDS if field in data}
        )
        logger.info(f'Template {template.id} "{template.name}" created')
        return template

    def update_template(self, template: DocumentTemplate, data: Dict) -> DocumentTemplate:
        """
        Apply edits to a template.

        Once a signing request references the template only metadata may
        change; the content fields stay as they were when it was sent.
        """
        changed = [field for field in EDITABLE_FIELDS if field in data and data[field] != getattr(template, field)]

        locked = [field for field in changed if field in CONTENT_FIELDS]
        if locked and template.signing_requests.exists():
            logger.warning(f'Rejected content edit on referenced template {template.id}: {", ".join(locked)}')
            raise SigningValidationError(
                'Template content cannot change once it has been sent for signing',
                details={'locked_fields': locked},
            )

        for field in changed:
            setattr(template, field, data[field])
        if changed:
            template.save(update_fields=changed + ['updated_at'])
            logger.info(f'Template {template.id} updated: {", ".join(changed)}')
        return template

    def deactivate_template(self, template: DocumentTemplate) -> DocumentTemplate:
        """Templates are never deleted, signed documents keep pointing at them."""
        if template.is_active:
            template.is_active = False
            template.save(update_fields=['is_active', 'updated_at'])
            logger.info(f'Template {template.id} deactivated')
        return template
