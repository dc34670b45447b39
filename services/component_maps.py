from enum import Enum


class ComponentCategory(str, Enum):
    """Deployment category. The value is the ticket attribute holding its comma-joined names."""
    ARCHITECT = "architect"
    DDL = "ddl"
    DML = "dml"
    WEB = "web"
    GATEWAY = "chewy_wms_gateway"
    FITNESSE = "fitnesse"
    NON_STANDARD = "non_standard"


# Jira component name -> canonical deployable name, per category
COMPONENT_MAPS = {
    ComponentCategory.ARCHITECT: {
        "Advantage Platform - Architect": "Advantage Platform",
        "AdvLinkFlatFile - Architect": "AdvLinkFlatFile",
        "AdvLinkXMLHost - Architect": "AdvLinkXMLHost",
        "API - Architect": "API",
        "Autobatching - Architect": "Autobatching",
        "CFS - Architect": "CFS",
        "ChewyLinkForIntegrationService - Architect": "ChewyLinkForIntegrationService",
        "ChewyLinkForJSON - Architect": "ChewyLinkForJSON",
        "ChewyLinkForSNS - Architect": "ChewyLinkForSNS",
        "ChewyLinkForSockets - Architect": "ChewyLinkForSockets",
        "ChewyLinkForXML - Architect": "ChewyLinkForXML",
        "ChewyPlatformExt - Architect": "Chewy Platform Ext",
        "ContainerAdv - Architect": "ContainerAdv",
        "Create Counts - Architect": "CreateCounts",
        "CVP - Architect": "CVP",
        "Deploy Manager - Architect": "DeployManager",
        "Exacta - Architect": "Exacta",
        "Fetch - Architect": "Fetch",
        "GPS - Architect": "GPS",
        "RF Andon - Architect": "RF Andon",
        "SendEmail - Architect": "SendEmail",
        "System Monitor - Architect": "System Monitor",
        "UnitSorter - Architect": "UnitSorter",
        "WA 2G - Architect": "WA 2G",
        "WA - Architect": "WA",
        "WA Processors - Architect": "WA Processors",
        "WA Processors IO - Architect": "WA Processors IO",
        "WA Rx - Architect": "WA Rx",
    },
    ComponentCategory.DDL: {
        "AAD - Database": "AAD",
        "AAD_IMPORT_ORDER - Database": "AAD_IMPORT_ORDER",
        "AAD_MASTER - Database": "AAD_MASTER",
        "ADV - Database": "ADV",
        "ADV IO - Database": "ADV_IMPORT_ORDER",
        "ADV Master - Database": "ADV_MASTER",
        "ARCH - Database": "ARCH",
        "CLS - Database": "CLS Database",
        "KoerberOne - Database": "KoerberOne - Database",
        "WMS_LOG - Database": "WMS_LOG",
        "WMS_LOG IO - Database": "WMS_LOG IO",
        "WMS_LOG Master - Database": "WMS_LOG Master",
    },
    ComponentCategory.DML: {
        "DML - Database": "DML",
    },
    ComponentCategory.WEB: {
        "Advantage Commander - Web": "Advantage Commander",
        "Advantage Dashboard - Web": "Advantage Dashboard",
        "Advantage Link Admin - Web": "Advantage Link Admin",
        "Chewy Commander Ext - Web": "Chewy Commander Ext",
        "Chewy Platform Ext - Web": "Chewy Platform Ext",
        "Container Advantage - Web": "Container Advantage",
        "Data Upload": "Data Upload",
        "Deploy Manager - Web": "DeployManager",
        "Email Notification - Web": "Email Notification",
        "Extended VAS - Web": "Extended VAS",
        "RF Menu Manager - Web": "RF Menu Manager",
        "Self Service - Web": "Self Service",
        "Send Email - Web": "Send Email",
        "System Monitor - Web": "System Monitor",
        "WA - Web": "WA",
        "WA Appointment - Web": "WA - Appointment",
    },
    ComponentCategory.GATEWAY: {
        "ChewyWMSGateway": "ChewyWMSGateway",
    },
    ComponentCategory.FITNESSE: {
        "FitNesse": "Fitnesse",
    },
    ComponentCategory.NON_STANDARD: {
        "CLS Script": "CLS Script",
        "Datahub": "Datahub",
        "Data Upload": "Data Upload",
        "Dynatrace": "Dynatrace",
        "Splunk": "Splunk",
        "WMS Server Config": "WMS Server Config",
        "AWS": "AWS",
        "Scheduled Task": "Scheduled Task",
        "CONTROL.INI": "CONTROL.INI",
        "Telnet": "Telnet",
    },
}


def categories_for(component_name):
    """Every (category, canonical name) a Jira component maps to; a name may sit in several tables."""
    return [
        (category, table[component_name])
        for category, table in COMPONENT_MAPS.items()
        if component_name in table
    ]
