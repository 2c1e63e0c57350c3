"""
AICAMPUS Backend - AI Task Assistant.
Turns the user's pending tasks into a prioritization plan or a time
estimate. Estimates are anchored to the request date so the model never
suggests starting in the past.
"""

import math
from datetime import datetime

from aicampus.constants import TASK_ANALYSIS_TYPES
from aicampus.errors import ConfigurationError, ValidationError

ALL_DONE_REPLY = "🎉 Selamat! Kamu tidak punya tugas yang pending. Semua tugas sudah selesai!"
FALLBACK_REPLY = "Maaf, tidak ada respons dari AI."

MONTHS_ID = [
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
]
WEEKDAYS_ID = ["Senin", "Selasa", "Rabu", "Kamis", "Jumat", "Sabtu", "Minggu"]


def format_date_id(value: datetime, with_weekday: bool = False) -> str:
    """'19 Oktober 2026', or 'Senin, 19 Oktober 2026'."""
    text = f"{value.day} {MONTHS_ID[value.month - 1]} {value.year}"
    if with_weekday:
        return f"{WEEKDAYS_ID[value.weekday()]}, {text}"
    return text


def parse_deadline(raw) -> datetime | None:
    if not raw or not isinstance(raw, str):
        return None
    try:
        parsed = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    # Compare naive local times
    return parsed.replace(tzinfo=None)


def days_until(deadline: datetime, now: datetime) -> int:
    return math.ceil((deadline - now).total_seconds() / 86400)


def pending_tasks(tasks: list) -> list[dict]:
    return [t for t in tasks if isinstance(t, dict) and not t.get("completed")]


def _deadline_text(task: dict) -> str:
    deadline = parse_deadline(task.get("deadline"))
    return format_date_id(deadline) if deadline else "Tidak ada deadline"


def build_prioritize_prompt(tasks: list[dict]) -> str:
    listing = "\n".join(
        f"""
{index}. **{task.get('title', '')}**
   - Mata Kuliah: {task.get('category') or 'Tidak disebutkan'}
   - Deskripsi: {task.get('description') or 'Tidak ada deskripsi'}
   - Prioritas saat ini: {task.get('priority', 'medium')}
   - Deadline: {_deadline_text(task)}
"""
        for index, task in enumerate(tasks, start=1)
    )

    return f"""Kamu adalah AI Task Prioritizer yang membantu mahasiswa mengatur prioritas tugas mereka.

Berikut adalah daftar tugas yang belum selesai:

{listing}

Tugas kamu:
1. Analisis semua tugas berdasarkan deadline, prioritas, dan urgensi
2. Berikan rekomendasi urutan pengerjaan (mana yang harus dikerjakan terlebih dahulu)
3. Berikan alasan singkat untuk setiap rekomendasi
4. Berikan tips produktivitas untuk menyelesaikan semua tugas

Format jawaban:
🎯 **REKOMENDASI PRIORITAS TUGAS**

**Urutan Pengerjaan yang Disarankan:**

1. [Nama Tugas]
   ⏰ Alasan: [Jelaskan mengapa tugas ini prioritas utama]

2. [Nama Tugas]
   ⏰ Alasan: [Jelaskan mengapa tugas ini prioritas kedua]

(dan seterusnya...)

💡 **Tips Produktivitas:**
- [Tip 1]
- [Tip 2]
- [Tip 3]

Jawab dalam bahasa Indonesia yang ramah dan memotivasi!"""


def build_estimate_prompt(tasks: list[dict], now: datetime) -> str:
    today = format_date_id(now, with_weekday=True)

    entries = []
    for index, task in enumerate(tasks, start=1):
        deadline = parse_deadline(task.get("deadline"))
        remaining = f"{days_until(deadline, now)} hari lagi" if deadline else "Tidak ada deadline"
        entries.append(f"""
{index}. **{task.get('title', '')}**
   - Mata Kuliah: {task.get('category') or 'Tidak disebutkan'}
   - Deskripsi: {task.get('description') or 'Tidak ada deskripsi'}
   - Deadline: {format_date_id(deadline) if deadline else 'Tidak ada deadline'}
   - Sisa waktu: {remaining}
""")
    listing = "\n".join(entries)

    return f"""Kamu adalah AI Time Estimator yang membantu mahasiswa memperkirakan waktu pengerjaan tugas.

**INFORMASI PENTING:**
- Hari ini adalah: {today}
- Tanggal saat ini: {now.date().isoformat()}
- JANGAN memberikan saran mulai di masa lalu! Semua saran harus mulai dari hari ini atau sesudahnya.

Berikut adalah daftar tugas yang belum selesai:

{listing}

Tugas kamu:
1. Perkirakan waktu yang dibutuhkan untuk menyelesaikan setiap tugas (dalam jam)
2. Berikan breakdown waktu jika tugas bisa dipecah menjadi sub-tasks
3. Berikan saran kapan sebaiknya mulai mengerjakan berdasarkan deadline (HARUS mulai dari hari ini atau sesudahnya, JANGAN masa lalu!)
4. Total waktu yang dibutuhkan untuk menyelesaikan semua tugas
5. Pertimbangkan deadline dan prioritaskan tugas yang deadline-nya lebih dekat

Format jawaban:
⏱️ **ESTIMASI WAKTU PENGERJAAN**

**Per Tugas:**

1. **[Nama Tugas]**
   - Estimasi waktu: [X jam]
   - Breakdown:
     • [Sub-task 1]: [X jam]
     • [Sub-task 2]: [X jam]
   - Saran mulai: [Sebutkan tanggal yang realistis, MINIMAL mulai hari ini ({today})]
   - Rekomendasi: [Kapan harus selesai, jadwal pengerjaan]

📊 **Ringkasan:**
- Total waktu dibutuhkan: [X jam]
- Rata-rata per tugas: [X jam]
- Rekomendasi jadwal: [Saran jadwal harian mulai dari hari ini]

⚠️ **Peringatan Deadline:**
[Sebutkan tugas mana yang deadline-nya mendesak dan perlu dikerjakan segera]

💡 **Tips Manajemen Waktu:**
- [Tip 1]
- [Tip 2]
- [Tip 3]

PENTING: Semua saran tanggal mulai HARUS mulai dari hari ini ({today}) atau sesudahnya. TIDAK BOLEH masa lalu!

Jawab dalam bahasa Indonesia yang ramah dan realistis!"""


async def analyze_tasks(provider, tasks, analysis_type: str | None, now: datetime | None = None) -> str:
    """
    Run the requested analysis over pending tasks.
    No pending tasks -> canned congratulation, no AI call.
    """
    if not isinstance(tasks, list):
        raise ValidationError("Invalid tasks data")

    pending = pending_tasks(tasks)
    if not pending:
        return ALL_DONE_REPLY

    if analysis_type not in TASK_ANALYSIS_TYPES:
        raise ValidationError('Invalid analysis type. Use "prioritize" or "estimate"')

    if provider is None or not provider.configured:
        raise ConfigurationError("Groq API key not configured")

    if analysis_type == "prioritize":
        prompt = build_prioritize_prompt(pending)
    else:
        prompt = build_estimate_prompt(pending, now or datetime.now())

    print(f"[TASKS] {analysis_type} over {len(pending)} pending task(s)")
    text = await provider.complete(
        [{"role": "user", "content": prompt}], temperature=0.7, max_tokens=2000,
    )
    return text or FALLBACK_REPLY
