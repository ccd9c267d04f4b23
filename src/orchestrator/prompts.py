"""Prompt and message templates used by the conversation engine.

The assistants answer in Hebrew; templates addressed to the model are kept
in the working language, operational notes in English.
"""

DEFAULT_PROJECT_NAME = "Project"

ASSISTANT_NAME_TEMPLATE = "{project_name} Assistant"

ASSISTANT_INSTRUCTIONS_TEMPLATE = """You are a helpful assistant for the construction project "{project_name}".
You respond in Hebrew and help with any project related questions.
You should be friendly, helpful, and concise.
Make sure all responses are properly formatted for Hebrew text display (right-to-left).
**IMPORTANT: Do not include any text referencing the source document directly in your response, such as "(המידע מופיע במסמך ...)" or similar phrases. Only provide the answer.**"""

CONTINUATION_MESSAGE_TEMPLATE = (
    "This is a continuation of a previous conversation about project {project_id}. "
    "The conversation history was rotated due to length."
)

# Shown when an assistant reply is empty after normalization
NO_RESPONSE_FALLBACK = "\u202bלא התקבלה תשובה מהעוזר. נסה שוב.\u202c"

UNSUPPORTED_ASSISTANT_CONTENT = "\u202b[תוכן הודעה לא נתמך]\u202c"
UNSUPPORTED_USER_CONTENT = "[Unsupported content]"

VISUALIZATION_PROMPT = """
את/ה עוזר/ת AI המתמחה בניתוח נתוני פרויקטי בנייה.
נתח/י את התוכן של הקבצים שהועלו לפרויקט (תוכניות, כתבי כמויות, הצעות מחיר, דוחות התקדמות, תקציבים)
והצע/י תצוגות חזותיות שימושיות למנהל פרויקט בנייה: חלוקת תקציבים, כוח אדם, קצב התקדמות מול יעדים,
השוואות בין אזורים או קומות, ומדדי ביצוע מרכזיים אחרים שניתן להסיק מהנתונים.

חשוב מאוד:
1. השתמש/י אך ורק במידע מהקבצים. אל תמציא/י נתונים.
2. אל תציע/י תצוגות כלליות כמו "מספר קבצים". התמקד/י בתוכן.
3. לכל הצעה ציין/י כותרת, סוג תצוגה ('pie', 'bar', 'line', 'table'), תיאור קצר ונתונים בפורמט JSON תקין.

החזר/י אך ורק JSON בפורמט הבא:
{
  "visualizations": [
    {
      "title": "כותרת התצוגה",
      "type": "pie",
      "description": "מה התצוגה מראה",
      "data": {
        "labels": ["שלד", "גמר"],
        "datasets": [{"label": "תקציב (₪)", "data": [500000, 300000]}]
      }
    }
  ]
}

לטבלאות השתמש/י ב-"data": {"headers": [...], "rows": [[...]]}.
אם אין מספיק נתונים, החזר/י {"visualizations": []}.
"""


def assistant_name(project_name: str | None) -> str:
    """Display name of a project's assistant."""
    cleaned = (project_name or "").strip() or DEFAULT_PROJECT_NAME
    return ASSISTANT_NAME_TEMPLATE.format(project_name=cleaned)


def assistant_instructions(project_name: str | None) -> str:
    """System prompt of a project's assistant."""
    cleaned = (project_name or "").strip() or DEFAULT_PROJECT_NAME
    return ASSISTANT_INSTRUCTIONS_TEMPLATE.format(project_name=cleaned)


def continuation_message(project_id: str) -> str:
    """First message of a rotated thread."""
    return CONTINUATION_MESSAGE_TEMPLATE.format(project_id=project_id)
