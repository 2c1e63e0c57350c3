"""
AICAMPUS Backend - Chatbot Conversation Flow.
Builds the message list (system prompt + last 10 turns + new message) for
each chat mode and forwards it to the mode's LLM provider.
"""

from aicampus import campus_config
from aicampus.constants import CHAT_MODES, MAX_HISTORY
from aicampus.errors import ConfigurationError, ValidationError

FALLBACK_REPLY = "Maaf, tidak ada respons."

TEMPERATURE = 0.7
TOP_P = 1
MAX_TOKENS = 1000

# uns -> Gemini, everything else -> Groq
MODE_PROVIDERS = {
    "uns": "gemini",
    "campus": "groq",
    "general": "groq",
    "aicampus": "groq",
}

# Frontend placeholders that must never reach the model as history
WELCOME_MARKERS = {
    "uns": [
        "Halo! Saya AI Campus Navigator. Ada yang bisa saya bantu tentang kampus?",
        "Halo! Saya AI Campus Navigator UNS. Saya siap membantu menjawab pertanyaan seputar kampus.",
    ],
    "campus": ["Halo! Saya AI Campus Navigator"],
    "general": ["Halo! Saya asisten AI yang siap membantu"],
    "aicampus": ["Halo! Saya AI Assistant untuk aplikasi web AICAMPUS"],
}

GENERAL_SYSTEM_PROMPT = """Kamu adalah asisten AI yang cerdas dan membantu.
Jawab pertanyaan dengan informatif, akurat, dan ramah.
Gunakan bahasa Indonesia yang baik dan mudah dipahami.
Kamu bisa menjawab berbagai topik: teknologi, sains, budaya, kehidupan sehari-hari, dan lainnya."""

NAVIGATOR_TASKS = """Tugasmu:
- Jawab pertanyaan tentang {subject} dengan informasi di atas
- Berikan panduan step-by-step jika diperlukan
- Jika ditanya hal spesifik yang tidak ada di data, sarankan untuk cek ke {website} atau hubungi fakultas
- Gunakan bahasa Indonesia yang ramah, santai tapi profesional
- Selalu helpful dan informatif

Jika ada pertanyaan di luar konteks {scope}, arahkan kembali ke topik kampus dengan sopan."""

AICAMPUS_SYSTEM_PROMPT = """Kamu adalah AI Assistant untuk aplikasi web AICAMPUS.

INFORMASI TENTANG AICAMPUS:

🎯 Tentang AICAMPUS:
AICAMPUS adalah platform asisten virtual berbasis AI yang dirancang khusus untuk membantu mahasiswa dalam kehidupan kampus. Platform ini mengintegrasikan berbagai fitur cerdas untuk mendukung aktivitas akademik dan non-akademik mahasiswa.

🌟 Fitur Utama AICAMPUS:

1. AI Campus Navigator:
- Chatbot cerdas untuk menjawab pertanyaan seputar kampus
- Informasi tentang KRS, gedung, dosen, beasiswa, UKM
- Panduan step-by-step untuk prosedur akademik

2. Event Recommender:
- Rekomendasi event personal berdasarkan minat dan jurusan
- Filter event: seminar, lomba, workshop, volunteering
- Notifikasi event yang sesuai dengan profil

3. Smart Schedule Builder:
- Pembuat jadwal kuliah otomatis dengan AI
- Deteksi bentrok jadwal
- Optimasi waktu belajar dan istirahat
- Integrasi dengan kalender akademik

4. Peer Connect AI:
- Sistem pencocokan mentor dan teman belajar
- Berdasarkan minat, jurusan, dan tujuan karir
- Networking yang berkualitas di kampus

💡 Cara Menggunakan AICAMPUS:

1. Buka website AICAMPUS di browser
2. Pilih fitur yang diinginkan dari menu navigasi
3. Ikuti panduan interaktif untuk setiap fitur
4. Gunakan chatbot untuk bantuan instan

💰 Harga dan Paket:
- Paket Gratis: Akses ke semua fitur dasar
- Paket Premium: Fitur tambahan dengan harga terjangkau untuk mahasiswa

📞 Bantuan dan Dukungan:
- FAQ interaktif dengan chatbot
- Email support: support@aicampus.id
- Tutorial video untuk setiap fitur

Tugasmu:
- Jawab pertanyaan tentang aplikasi AICAMPUS dengan informasi di atas
- Berikan panduan step-by-step cara menggunakan fitur-fitur AICAMPUS
- Jelaskan keunggulan dan manfaat AICAMPUS untuk mahasiswa
- Gunakan bahasa Indonesia yang ramah, santai tapi profesional
- Selalu helpful dan informatif

Jika ada pertanyaan di luar konteks AICAMPUS, berikan pesan:
"Maaf, saya hanya chatbot AICAMPUS yang bisa menyediakan jawaban seputar aplikasi AICAMPUS. Saya dapat membantu Anda dengan informasi tentang fitur-fitur AICAMPUS, cara penggunaan, keunggulan, dan panduan lainnya terkait aplikasi ini.\""""


def get_system_prompt(mode: str, university: str | None = None) -> str:
    """Full system prompt for a chat mode."""
    if mode == "general":
        return GENERAL_SYSTEM_PROMPT
    if mode == "aicampus":
        return AICAMPUS_SYSTEM_PROMPT

    campus = campus_config.get_campus()
    facts = campus_config.get_campus_facts()

    if mode == "campus":
        name = (university or "").strip() or "universitas"
        tasks = NAVIGATOR_TASKS.format(
            subject=(university or "").strip() or "kampus",
            website="website resmi",
            scope="kampus",
        )
    else:
        name = campus["name"]
        tasks = NAVIGATOR_TASKS.format(
            subject=campus["short"],
            website=f"website resmi {campus['short']} ({campus['website']})",
            scope=f"{campus['short']}/kampus",
        )

    return f"Kamu adalah AI Campus Navigator untuk {name}.\n\n{facts}\n\n{tasks}"


def _is_welcome(mode: str, content: str) -> bool:
    return any(marker in content for marker in WELCOME_MARKERS.get(mode, []))


def build_history(mode: str, history: list | None) -> list[dict]:
    """
    Drop welcome placeholders, keep the last MAX_HISTORY turns, and
    normalize roles to user/assistant.
    """
    turns = []
    for msg in history or []:
        if not isinstance(msg, dict):
            continue
        content = msg.get("content") or ""
        if not content or _is_welcome(mode, content):
            continue
        turns.append({
            "role": "user" if msg.get("role") == "user" else "assistant",
            "content": content,
        })
    return turns[-MAX_HISTORY:]


def build_messages(mode: str, message: str, history: list | None = None,
                   university: str | None = None) -> list[dict]:
    """Build the messages array for the LLM call."""
    messages = [{"role": "system", "content": get_system_prompt(mode, university)}]
    messages.extend(build_history(mode, history))
    messages.append({"role": "user", "content": message})
    return messages


async def generate_reply(provider, mode: str, message: str | None, history: list | None = None,
                         university: str | None = None) -> str:
    """
    Validate, then run one completion. Order matters: a missing message is
    rejected before the credential check, and both before any network call.
    """
    if mode not in CHAT_MODES:
        raise ValidationError(f"Unknown chat mode: {mode}")
    if not isinstance(message, str) or not message.strip():
        raise ValidationError("Message is required")
    if provider is None or not provider.configured:
        label = provider.name.capitalize() if provider is not None else MODE_PROVIDERS[mode].capitalize()
        raise ConfigurationError(f"{label} API key not configured")

    messages = build_messages(mode, message, history, university)
    print(f"[CHAT] mode={mode} provider={provider.name} history={len(messages) - 2}")

    text = await provider.complete(
        messages, temperature=TEMPERATURE, max_tokens=MAX_TOKENS, top_p=TOP_P,
    )
    return text or FALLBACK_REPLY
