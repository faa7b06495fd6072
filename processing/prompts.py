SUMMARY_SYSTEM_PROMPT = """Eres un asistente especializado en resumir reuniones \
y grabaciones. Respondes unicamente con JSON valido, sin bloques de codigo ni \
explicaciones. No inventes informacion que no este en la transcripcion."""

SUMMARY_USER_PROMPT = """Analiza la siguiente transcripcion y genera un resumen \
completo en formato JSON.

Devuelve un objeto JSON con esta estructura exacta:
{{
  "fullText": "Resumen conciso de todo el contenido (2-3 parrafos)",
  "keyPoints": ["Puntos clave y temas tratados"],
  "actionItems": ["Tareas concretas mencionadas"],
  "decisions": ["Decisiones tomadas"],
  "participants": ["Nombres de participantes mencionados"]
}}

Si alguna lista no aplica, devuelvela vacia. Extrae solo informacion factual.

---
Transcripcion:
{transcription}"""

CONSOLIDATION_PROMPT = """A continuacion hay varios resumenes parciales en JSON \
de una misma grabacion. Consolida toda la informacion en un unico objeto JSON \
con la misma estructura (fullText, keyPoints, actionItems, decisions, \
participants). Elimina redundancias y combina las listas.

{partials}"""
