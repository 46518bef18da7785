"""Texts sent to reporters and moderators."""

from typing import Optional

from .catalog import OTHER_KEY, Catalog, Category
from .models import Report

EMERGENCY_NOTE = "_ℹ️ Solo atendemos reportes ciudadanos. Si tienes una emergencia, llama al 911._"
SIGNATURE = "*Lo que reportas, importa.*"

PHOTO_PROMPT = "Envía una *foto* del problema."
PHOTO_REQUIRED = "Necesito una foto."
PHOTO_FAILED = "Ocurrió un error al guardar la foto de tu reporte. Intenta enviar la imagen de nuevo."
DESCRIPTION_PROMPT = "Describe brevemente *el problema*."
DESCRIPTION_REQUIRED = "Escribe la descripción."
LOCATION_PROMPT = (
    "Indica la *ubicación*: ubicación de WhatsApp, coordenadas _(lat,lon)_ o dirección completa "
    "_(Calle, número y colonia o población)_."
)
LOCATION_REQUIRED = "Comparte tu ubicación o escribe la dirección."
ADDRESS_NOT_FOUND = "No encontré esa dirección. Intenta con otra referencia o comparte tu ubicación."
GEOCODER_FAILED = "No pude buscar esa dirección en este momento. Intenta de nuevo o comparte tu ubicación."
LANDMARK_PROMPT = "Danos una *referencia visual* (al lado de X, frente a X, etc...)."
LANDMARK_REQUIRED = "Escribe una referencia visual."
SEVERITY_PROMPT = "Del 1 al 5, ¿qué tan urgente es?\n1 = leve\n5 = serio"
SEVERITY_INVALID = "Responde con un número del 1 al 5."
SUBCATEGORY_INVALID = "Número inválido."
SAVE_FAILED = "Hubo un error guardando tu reporte. Envía de nuevo tu respuesta para intentarlo otra vez."
CANCELLED = "Reporte cancelado. Escribe cualquier mensaje para empezar de nuevo."
SESSION_LOST = "Hubo un problema con tu reporte. Escribe cualquier mensaje para empezar de nuevo."


def category_menu(catalog: Catalog) -> str:
    lines = [f"{c.key}. {c.name}" for c in catalog.ordered()]
    return (
        "Hola 👋, ¿qué tipo de problema quieres reportar?\n\n"
        + "\n".join(lines)
        + "\n\n"
        + EMERGENCY_NOTE
    )


def category_invalid(catalog: Catalog) -> str:
    keys = sorted(catalog.keys, key=lambda k: int(k) if k.isdigit() else 0)
    return f"Elige un número válido ({keys[0]}–{keys[-1]})."


def subcategory_menu(category: Category) -> str:
    options = [f"{i}. {label}" for i, label in enumerate(category.subcategories, start=1)]
    options.append(f"{OTHER_KEY}. {category.other_label}")
    prompt = "Elige una opción:"
    if category.open_subcategory:
        prompt = "Elige una opción o escribe el problema:"
    return f"*{category.name}*\n{prompt}\n" + "\n".join(options)


def report_received(category: str, edit_url: Optional[str]) -> str:
    text = f"✅ Gracias por tu reporte de *{category}*.\n\n"
    if edit_url:
        text += (
            "Lo revisaremos antes de publicarlo, mientras, puedes revisar su ubicación "
            f"y ajustarla aquí _(24 h)_:\n{edit_url}"
        )
    else:
        text += "Lo revisaremos antes de publicarlo."
    return text + f"\n\n{SIGNATURE}"


def moderator_new_report(report: Report, panel_url: str) -> str:
    return (
        "🔔 Nuevo reporte pendiente en *Tulum Reporta*.\n\n"
        f"Categoría: {report.category}\n"
        f"Subcategoría: {report.subcategory or '-'}\n"
        f"Gravedad: {report.severity} (prioridad {report.priority})\n\n"
        f"Revísalo en el panel de reportes:\n{panel_url}"
    )


def report_published(report: Report, map_base_url: str) -> str:
    return (
        f"✅ Tu reporte de *{report.category}* fue *publicado*.\n"
        f"{map_base_url}?i={report.id}\n\n"
        "Daremos seguimiento con la autoridad, empresa o responsable correspondiente y "
        "actualizaremos el estado del reporte cuando haya avances.\n\n"
        "De tu lado, puedes compartir este enlace con vecinos o autoridades y consultar "
        "el mapa para ver cómo evoluciona.\n\n"
        f"{SIGNATURE}"
    )


def report_rejected(report: Report, reason: Optional[str], terms_url: str) -> str:
    return (
        f"❌ Tu reporte de *{report.category}* fue rechazado:\n\n"
        f"*{reason or 'Sin motivo.'}*\n\n"
        f"Por favor revisa nuestras condiciones de uso:\n{terms_url}\n\n"
        "Cuando estés listo, envía un nuevo reporte con las correcciones."
    )


def report_assigned(report: Report) -> str:
    responsible = f": *{report.responsible}*" if report.responsible else ""
    return (
        f"ℹ️ Tu reporte de *{report.category}* fue *asignado* a un responsable{responsible}.\n"
        "Ahora el siguiente paso es que el responsable atienda el problema; cuando se marque "
        "como resuelto te lo notificaremos.\n\n"
        "De tu lado, puedes seguir revisando el estado desde el mapa y avisarnos si la "
        "situación empeora.\n\n"
        f"{SIGNATURE}"
    )


def report_resolved(report: Report) -> str:
    return (
        f"✅ Tu reporte de *{report.category}* fue marcado como *resuelto*.\n"
        "Ahora consideramos atendido este incidente.\n\n"
        "Si el problema continúa o reaparece, puedes volver a reportarlo para que se genere "
        "un nuevo seguimiento.\n\n"
        f"{SIGNATURE}"
    )
