"""
AICAMPUS Backend - Campus Configuration.
Campus facts injected into the navigator system prompts. The frontend may
send a university name; the facts block comes from the active campus.
"""

import os

# Default campus from env
ACTIVE_CAMPUS = os.getenv("CAMPUS", "uns")


CAMPUSES = {
    "uns": {
        "name": "Universitas Sebelas Maret (UNS) Surakarta",
        "short": "UNS",
        "city": "Surakarta",
        "website": "uns.ac.id",
        "facts": {
            "📚 KRS (Kartu Rencana Studi) di UNS": [
                "KRS dibuka setiap awal semester (biasanya 2 minggu sebelum perkuliahan dimulai)",
                "Akses melalui SIMASTER (Sistem Informasi Akademik UNS) di simaster.uns.ac.id",
                "Batas maksimal SKS: 24 SKS per semester (untuk mahasiswa dengan IPK >= 3.00)",
                "Batas minimal SKS: 12 SKS per semester",
                "KRS bisa direvisi dalam masa KRS dan masa revisi KRS (biasanya 2 minggu pertama kuliah)",
                "Wajib konsultasi dengan Dosen Pembimbing Akademik (DPA) sebelum finalisasi KRS",
            ],
            "📍 Lokasi Gedung Utama di UNS": [
                "Rektorat: Gedung pusat administrasi kampus",
                "Perpustakaan Pusat: Buka Senin-Jumat 08.00-20.00, Sabtu 08.00-16.00",
                "Student Center: Pusat kegiatan mahasiswa",
                "Gedung Fakultas: Tersebar di 9 fakultas (FKIP, FEB, Hukum, FMIPA, FT, Pertanian, dll)",
            ],
            "💰 Beasiswa di UNS": [
                "Beasiswa PPA (Peningkatan Prestasi Akademik)",
                "Beasiswa BBM (Bantuan Biaya Mahasiswa)",
                "Beasiswa Bidikmisi/KIP Kuliah",
                "Beasiswa prestasi dari fakultas masing-masing",
                "Info beasiswa cek di website kemahasiswaan UNS",
            ],
            "🎯 UKM (Unit Kegiatan Mahasiswa) Populer": [
                "UKM Olahraga: Basket, Futsal, Voli, Badminton",
                "UKM Seni: Paduan Suara, Tari, Teater",
                "UKM Akademik: LPM, BEM, Himpunan Mahasiswa",
                "UKM Kerohanian: IMM, PMII, HMI",
            ],
            "📅 Kalender Akademik": [
                "Semester Ganjil: September - Januari",
                "Semester Genap: Februari - Juni",
                "UTS: Minggu ke-8 perkuliahan",
                "UAS: Minggu ke-16 perkuliahan",
            ],
            "🏫 Fasilitas Kampus": [
                "Wifi kampus tersedia di seluruh area (UNS-Wifi)",
                "Kantin tersebar di setiap fakultas",
                "Asrama mahasiswa (untuk yang memenuhi syarat)",
                "Klinik kesehatan kampus",
                "Masjid Nurul Iman",
            ],
        },
    },
}


def get_campus(campus_id: str | None = None) -> dict:
    """Get campus config by ID. Falls back to the active campus, then UNS."""
    cid = (campus_id or ACTIVE_CAMPUS).lower().strip()
    return CAMPUSES.get(cid, CAMPUSES["uns"])


def list_campuses() -> dict:
    """List all supported campuses."""
    return {
        "ok": True,
        "campuses": [
            {"id": cid, "name": c["name"], "short": c["short"], "city": c["city"]}
            for cid, c in CAMPUSES.items()
        ],
    }


def get_campus_facts(campus_id: str | None = None) -> str:
    """Render the campus facts as the bulleted block the prompts embed."""
    campus = get_campus(campus_id)
    sections = []
    for heading, items in campus["facts"].items():
        lines = "\n".join(f"- {item}" for item in items)
        sections.append(f"{heading}:\n{lines}")
    return f"INFORMASI KAMPUS {campus['short']}:\n\n" + "\n\n".join(sections)
