"""
Local keyword knowledge base used when the generative model is unavailable.

Entries are matched in declaration order; the first entry with a keyword
contained in the lowercased question wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from shared.types import ChatDetail


@dataclass(frozen=True)
class KnowledgeEntry:
    topic: str
    keywords: tuple[str, ...]
    detailed: str
    concise: str

    def answer(self, detail: ChatDetail) -> str:
        return self.detailed if detail == ChatDetail.DETAILED else self.concise

    def matches(self, question: str) -> bool:
        return any(keyword in question for keyword in self.keywords)


KNOWLEDGE_BASE: tuple[KnowledgeEntry, ...] = (
    KnowledgeEntry(
        topic="budidaya",
        keywords=("budidaya", "tanaman", "padi", "jagung", "sayuran", "cara menanam"),
        detailed=(
            "Langkah dasar budidaya:\n\n"
            "1. **Olah lahan**: bersihkan gulma, gemburkan tanah, beri bahan organik.\n"
            "2. **Benih**: pilih varietas yang cocok dengan lokasi dan musim.\n"
            "3. **Tanam**: atur jarak tanam sesuai ukuran tanaman dewasa.\n"
            "4. **Rawat**: pupuk bertahap, jaga kelembapan, amati hama tiap minggu.\n"
            "5. **Panen**: petik saat matang fisiologis.\n\n"
            "Catat setiap penanaman di menu Input Tanam agar hasilnya bisa dibandingkan."
        ),
        concise=(
            "Budidaya: olah lahan, pilih benih cocok, atur jarak tanam, "
            "pupuk bertahap, jaga air, amati hama, panen tepat waktu."
        ),
    ),
    KnowledgeEntry(
        topic="hama",
        keywords=("hama", "penyakit", "hewan pengganggu", "kutu", "ulat"),
        detailed=(
            "Mengendalikan hama dan penyakit:\n\n"
            "1. **Kenali** gejalanya dulu: daun berlubang, bercak, atau tanaman layu.\n"
            "2. **Cara hayati**: manfaatkan musuh alami dan tanaman pengusir.\n"
            "3. **Sanitasi**: buang bagian tanaman yang terserang.\n"
            "4. **Pestisida** hanya bila perlu, sesuai dosis dan masa tunggu panen.\n"
            "5. **Cegah** dengan rotasi tanaman dan varietas tahan."
        ),
        concise=(
            "Hama: kenali gejala, utamakan musuh alami dan sanitasi, "
            "pestisida hanya bila perlu, rotasi tanaman untuk pencegahan."
        ),
    ),
    KnowledgeEntry(
        topic="pupuk",
        keywords=("pupuk", "pemupukan", "nutrisi", "unsur hara"),
        detailed=(
            "Dasar pemupukan:\n\n"
            "1. **Pupuk dasar** organik (kompos atau kandang) saat olah lahan.\n"
            "2. **Susulan** N, P, K sesuai fase: vegetatif lalu pembungaan.\n"
            "3. **Letakkan** pupuk agak jauh dari batang lalu tutup tanah.\n"
            "4. **Uji tanah** bila bisa, supaya dosis tidak berlebihan."
        ),
        concise=(
            "Pupuk: organik sebagai dasar, susulan NPK sesuai fase, "
            "jangan menempel batang, sesuaikan dosis dengan kondisi tanah."
        ),
    ),
    KnowledgeEntry(
        topic="irigasi",
        keywords=("irigasi", "air", "pengairan", "sistem air"),
        detailed=(
            "Pengairan yang hemat:\n\n"
            "1. **Siram pagi atau sore** untuk mengurangi penguapan.\n"
            "2. **Cek tanah**: siram ketika lapisan atas mulai kering.\n"
            "3. **Mulsa** membantu menahan kelembapan.\n"
            "4. **Irigasi tetes** cocok untuk sayuran dan hortikultura.\n"
            "5. **Hindari genangan** pada tanaman yang tidak membutuhkannya."
        ),
        concise=(
            "Air: siram pagi/sore saat tanah mulai kering, pakai mulsa, "
            "irigasi tetes untuk sayuran, hindari genangan."
        ),
    ),
    KnowledgeEntry(
        topic="panen",
        keywords=("panen", "hasil panen", "waktu panen", "hasil", "produksi"),
        detailed=(
            "Panen dan pascapanen:\n\n"
            "1. **Tentukan kematangan** dari warna, ukuran, dan umur tanaman.\n"
            "2. **Panen pagi hari** saat cuaca kering.\n"
            "3. **Alat bersih** agar hasil tidak rusak.\n"
            "4. **Sortir** hasil yang rusak, simpan di tempat sejuk dan kering.\n\n"
            "Masukkan hasil panen di menu Input Panen untuk melihat statistik Anda."
        ),
        concise=(
            "Panen: cek kematangan, petik pagi hari dengan alat bersih, "
            "sortir lalu simpan di tempat sejuk dan kering."
        ),
    ),
    KnowledgeEntry(
        topic="harga",
        keywords=("harga", "pasar", "penjualan", "nilai", "ekonomi"),
        detailed=(
            "Harga dan penjualan:\n\n"
            "1. **Pantau harga** di menu Harga Pasar sebelum menanam dan menjual.\n"
            "2. **Harga turun** biasanya saat panen raya, jadi pertimbangkan jual bertahap.\n"
            "3. **Mutu** dan kemasan yang rapi menaikkan nilai jual.\n"
            "4. **Catat biaya** produksi untuk menghitung keuntungan."
        ),
        concise=(
            "Harga: pantau menu Harga Pasar, jual bertahap saat panen raya, "
            "jaga mutu, catat biaya produksi."
        ),
    ),
    KnowledgeEntry(
        topic="teknologi",
        keywords=("teknologi", "modern", "inovasi", "smart", "precision", "sensor"),
        detailed=(
            "Teknologi pertanian yang terjangkau:\n\n"
            "1. **Alat ukur sederhana**: pH meter dan termometer tanah.\n"
            "2. **Sensor kelembapan** untuk jadwal penyiraman.\n"
            "3. **Aplikasi pencatatan** seperti Sikuwat untuk riwayat tanam.\n"
            "4. **Mulai bertahap** dan sesuaikan dengan kemampuan biaya."
        ),
        concise=(
            "Teknologi: mulai dari pH meter dan sensor kelembapan, "
            "catat riwayat tanam di aplikasi, tingkatkan bertahap."
        ),
    ),
)

DEFAULT_DETAILED_ANSWER = (
    'Terima kasih atas pertanyaan tentang "{question}".\n\n'
    "Saya asisten pertanian lokal dan belum punya jawaban khusus untuk topik ini. "
    "Coba baca artikel dan tips di aplikasi, atau hubungi penyuluh pertanian setempat.\n\n"
    "Topik yang bisa saya bantu: budidaya, hama dan penyakit, pupuk, irigasi, "
    "panen, harga pasar, dan teknologi pertanian."
)
DEFAULT_CONCISE_ANSWER = (
    "Silakan tanyakan tentang budidaya, hama, pupuk, irigasi, panen, "
    "harga pasar, atau teknologi pertanian."
)


def find_entry(question: str) -> Optional[KnowledgeEntry]:
    lowered = question.lower()
    for entry in KNOWLEDGE_BASE:
        if entry.matches(lowered):
            return entry
    return None


def answer_from_knowledge_base(question: str, detail: ChatDetail) -> str:
    entry = find_entry(question)
    if entry:
        return entry.answer(detail)
    if detail == ChatDetail.DETAILED:
        return DEFAULT_DETAILED_ANSWER.format(question=question)
    return DEFAULT_CONCISE_ANSWER
