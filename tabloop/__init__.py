"""
tabloop - a chord-grid pattern sequencer.

Build a pattern out of sections of measures, place guitar chord shapes on a
16th-note grid, add a melody, save it, and hear it loop in real time over MIDI
while a beat cursor follows along.

How it fits together:

- **Pattern documents.** Sections (each with its own time signature) hold
  measures of slots; a slot holds a chord id or nothing. Structural edits
  (``tabloop.edits``) are pure functions returning a new document.
- **Chords and tunings.** A chord is a 6-character tab (``"320003"``) played
  in a named tuning (``"E A D G B e"``). Frets resolve to pitch classes.
- **Schedule compiler.** ``compile_timeline()`` turns a document and the chord
  and tuning libraries into a gapless, loopable timeline in MIDI pulses. It
  never fails: dangling references simply play nothing.
- **Transport.** An asyncio clock with hybrid sleep+spin timing plays the
  timeline over a mido port, loops it, and reports the slot under the cursor.
- **State machine.** ``tabloop.machine.transition()`` is a pure function from
  (state, command) to (state, effects). It allows one persistence mutation at
  a time and reloads every library after each one.
- **Orchestrator.** Executes the effects against a persistence backend
  (in-memory or a REST server) and the audio engine.
- **Surfaces.** A websocket web UI and an OSC control surface.

Minimal example:

    ```python
    import asyncio
    import tabloop

    async def main ():
        engine = tabloop.AudioEngine(initial_bpm=100)
        orchestrator = tabloop.Orchestrator(tabloop.InMemoryPersistence(), engine)
        await orchestrator.start()

        orchestrator.send(tabloop.machine.CreateChord(name="G", tab="320003", tuning="Standard"))
        await orchestrator.wait_idle()

        section = orchestrator.state.document.sections[0]
        orchestrator.send(tabloop.machine.SelectSlot(section.id, section.measures[0].id, 0))
        orchestrator.send(tabloop.machine.AssignChordToSlot(orchestrator.state.chords[0].id))

        orchestrator.send(tabloop.machine.StartAudio())
        orchestrator.send(tabloop.machine.TogglePlayback())
        await asyncio.sleep(8)

    asyncio.run(main())
    ```

Package-level exports: ``AudioEngine``, ``Orchestrator``, ``InMemoryPersistence``,
``HttpPersistence``, ``compile_timeline``.
"""

import tabloop.audio_engine
import tabloop.compiler
import tabloop.machine
import tabloop.orchestrator
import tabloop.persistence


AudioEngine = tabloop.audio_engine.AudioEngine
Orchestrator = tabloop.orchestrator.Orchestrator
InMemoryPersistence = tabloop.persistence.InMemoryPersistence
HttpPersistence = tabloop.persistence.HttpPersistence
compile_timeline = tabloop.compiler.compile_timeline
