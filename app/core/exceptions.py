class ConfigurationError(Exception):
    """Configuration invalide ou incomplète, détectée avant toute I/O"""


class AdapterNotFoundError(ConfigurationError):
    """Aucun adapter enregistré pour le type d'intégration demandé"""

    def __init__(self, integration_type):
        self.integration_type = integration_type
        type_name = getattr(integration_type, "value", integration_type)
        super().__init__(f"No adapter registered for type: {type_name}")


class IntegrationNotFoundError(Exception):
    """L'intégration demandée n'existe pas (ou plus)"""

    def __init__(self, integration_id: int):
        self.integration_id = integration_id
        super().__init__(f"Integration {integration_id} not found")
