from typing import List, Optional

from models.chat_models import TranscriptionEntry


class TranscriptBuffer:
    """Collects live transcription fragments per speaker until the turn completes"""

    def __init__(self):
        self.pending_user = ""
        self.pending_agent = ""
        self.history: List[TranscriptionEntry] = []

    def add_input(self, text: str) -> None:
        self.pending_user += text

    def add_output(self, text: str) -> None:
        self.pending_agent += text

    def complete_turn(self) -> Optional[TranscriptionEntry]:
        entry = None
        if self.pending_user or self.pending_agent:
            entry = TranscriptionEntry(user=self.pending_user, agent=self.pending_agent)
            self.history.append(entry)

        self.pending_user = ""
        self.pending_agent = ""
        return entry

    def handle_event(
        self,
        input_transcription: Optional[str] = None,
        output_transcription: Optional[str] = None,
        turn_complete: bool = False,
    ) -> Optional[TranscriptionEntry]:
        # A server message carries output or input transcription, output first
        if output_transcription:
            self.add_output(output_transcription)
        elif input_transcription:
            self.add_input(input_transcription)

        if turn_complete:
            return self.complete_turn()
        return None
