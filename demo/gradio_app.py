"""asm8-cpu Interactive Demo.

A Gradio web interface for stepping through programs on the asm8 simulator.

Usage:
    cd /path/to/asm8-cpu
    python demo/gradio_app.py

Features:
    - Write or load assembly programs
    - Assemble, step, run and reset
    - Registers, flags and fault latch
    - 16x16 memory view with IP and SP markers
    - Memory-mapped character output
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import gradio as gr
from asm8_cpu import AssemblerError, CPUError, CycleLimitExceeded, Simulator
from asm8_cpu.state import MAX_SP


PROGRAMS_DIR = Path(__file__).parent.parent / "programs"


# =============================================================================
# Example Programs
# =============================================================================

def _read_program(name: str) -> str:
    path = PROGRAMS_DIR / name
    return path.read_text() if path.exists() else ""


EXAMPLE_PROGRAMS = {
    "Hello World": _read_program("hello.asm"),
    "Sum 1-10": _read_program("sum_1_to_10.asm"),
    "Factorial 5": _read_program("factorial.asm"),
    "Custom": "",
}


# =============================================================================
# Rendering
# =============================================================================

def render_registers(sim: Simulator, hex_mode: bool) -> str:
    def fmt(value):
        return f"{value:02X}" if hex_mode else str(value)

    cpu = sim.cpu
    header = "| A | B | C | D | IP | SP | Z | C | F |"
    divider = "|---|---|---|---|----|----|---|---|---|"
    values = [fmt(v) for v in cpu.gpr] + [fmt(cpu.ip), fmt(cpu.sp)]
    values += ["1" if flag else "0" for flag in (cpu.zero, cpu.carry, cpu.fault)]
    return "\n".join([header, divider, "| " + " | ".join(values) + " |"])


def render_memory(sim: Simulator, hex_mode: bool) -> str:
    """16x16 memory grid. IP is marked with >, SP with *, stack cells with ."""
    cpu = sim.cpu
    width = 3 if hex_mode else 4
    lines = ["     " + " ".join(f"{col:>{width}X}" for col in range(16))]
    for row in range(16):
        cells = []
        for col in range(16):
            address = row * 16 + col
            value = sim.memory.data[address]
            text = f"{value:02X}" if hex_mode else f"{value:3d}"
            if address == cpu.ip:
                marker = ">"
            elif address == cpu.sp:
                marker = "*"
            elif cpu.sp < address <= MAX_SP:
                marker = "."
            else:
                marker = " "
            cells.append(f"{marker}{text}".rjust(width))
        lines.append(f"{row * 16:3X}: " + " ".join(cells))
    return "\n".join(lines)


def render(sim: Simulator, hex_mode: bool, message: str = ""):
    line = sim.current_line()
    source_line = "-"
    if line is not None and sim.assembly is not None:
        source_line = f"line {line + 1}"
    status = message or ("Halted" if sim.is_halted() else "Fault - reset to continue" if sim.is_faulted() else "Ready")
    return (
        sim,
        render_registers(sim, hex_mode),
        render_memory(sim, hex_mode),
        sim.output(),
        f"{status} | next instruction: {source_line} | cycles: {sim.get_cycle_count()}",
    )


# =============================================================================
# Actions
# =============================================================================

def assemble_program(program: str, sim: Simulator, hex_mode: bool):
    sim = sim or Simulator()
    try:
        assembly = sim.load_program(program)
    except AssemblerError as e:
        return render(sim, hex_mode, f"Assembly error: {e}")
    except CPUError as e:
        return render(sim, hex_mode, f"Load error: {e}")
    return render(sim, hex_mode, f"Assembled {len(assembly.code)} bytes")


def step_program(program: str, sim: Simulator, hex_mode: bool):
    if sim is None or sim.assembly is None:
        sim, *_ = assemble_program(program, sim, hex_mode)
        if sim.assembly is None:
            return render(sim, hex_mode, "Nothing to run")
    try:
        sim.step()
    except CPUError as e:
        return render(sim, hex_mode, f"Fault: {e}")
    return render(sim, hex_mode)


def run_program(program: str, sim: Simulator, hex_mode: bool, max_cycles: int):
    if sim is None or sim.assembly is None:
        sim, *_ = assemble_program(program, sim, hex_mode)
        if sim.assembly is None:
            return render(sim, hex_mode, "Nothing to run")
    try:
        sim.run(max_cycles=int(max_cycles))
    except CPUError as e:
        return render(sim, hex_mode, f"Fault: {e}")
    except CycleLimitExceeded as e:
        return render(sim, hex_mode, str(e))
    return render(sim, hex_mode)


def reset_program(sim: Simulator, hex_mode: bool):
    sim = sim or Simulator()
    sim.reset()
    return render(sim, hex_mode)


def load_example(example_name: str) -> str:
    """Load an example program."""
    return EXAMPLE_PROGRAMS.get(example_name, "")


# =============================================================================
# Gradio Interface
# =============================================================================

def create_demo():
    """Create and return the Gradio demo interface."""

    with gr.Blocks(title="asm8-cpu Simulator", theme=gr.themes.Soft()) as demo:
        gr.Markdown("""
        # asm8-cpu: Simple 8-bit Assembler Simulator

        256 bytes of memory, registers A-D, a descending stack at 231 and a
        character display mapped at addresses 232-255.
        """)

        sim_state = gr.State(None)

        with gr.Row():
            with gr.Column(scale=2):
                example_dropdown = gr.Dropdown(
                    choices=list(EXAMPLE_PROGRAMS.keys()),
                    value="Hello World",
                    label="Load Example"
                )

                program_input = gr.Textbox(
                    value=EXAMPLE_PROGRAMS["Hello World"],
                    label="Source Code",
                    lines=25,
                    placeholder="Enter assembly code here..."
                )

                with gr.Row():
                    assemble_button = gr.Button("Assemble")
                    step_button = gr.Button("Step")
                    run_button = gr.Button("Run", variant="primary")
                    reset_button = gr.Button("Reset")

                with gr.Row():
                    hex_checkbox = gr.Checkbox(value=True, label="Hex display")
                    max_cycles = gr.Slider(
                        minimum=100,
                        maximum=100000,
                        value=Simulator.DEFAULT_MAX_CYCLES,
                        step=100,
                        label="Max Cycles"
                    )

            with gr.Column(scale=3):
                output_display = gr.Textbox(label="Output", lines=1, interactive=False)
                registers_output = gr.Markdown()
                memory_output = gr.Textbox(label="Memory", lines=17, interactive=False)
                status_output = gr.Textbox(label="Status", lines=1, interactive=False)

        # Instruction set reference
        with gr.Accordion("Instruction Set", open=False):
            gr.Markdown("""
            | Instruction | Operands | Notes |
            |-------------|----------|-------|
            | `MOV` | reg/[addr]/[reg+n], reg/[addr]/[reg+n]/number | SP allowed as register |
            | `ADD` `SUB` `CMP` | reg, reg/[addr]/[reg+n]/number | sets Z and C |
            | `INC` `DEC` | reg | sets Z and C |
            | `MUL` `DIV` | reg/[addr]/[reg+n]/number | A = A op operand |
            | `AND` `OR` `XOR` `SHL` `SHR` | reg, reg/[addr]/[reg+n]/number | A-D only |
            | `NOT` | reg | A-D only |
            | `JMP` `JC` `JNC` `JZ` `JNZ` `JA` `JNA` | reg/address | |
            | `PUSH` / `POP` | reg/[addr]/[reg+n]/number / reg | |
            | `CALL` / `RET` | reg/address / - | |
            | `DB` | number/"string" | data |
            | `HLT` | - | stop |
            """)

        outputs = [sim_state, registers_output, memory_output, output_display, status_output]

        example_dropdown.change(
            fn=load_example,
            inputs=[example_dropdown],
            outputs=[program_input]
        )
        assemble_button.click(
            fn=assemble_program,
            inputs=[program_input, sim_state, hex_checkbox],
            outputs=outputs
        )
        step_button.click(
            fn=step_program,
            inputs=[program_input, sim_state, hex_checkbox],
            outputs=outputs
        )
        run_button.click(
            fn=run_program,
            inputs=[program_input, sim_state, hex_checkbox, max_cycles],
            outputs=outputs
        )
        reset_button.click(
            fn=reset_program,
            inputs=[sim_state, hex_checkbox],
            outputs=outputs
        )

    return demo


# =============================================================================
# Main
# =============================================================================

if __name__ == "__main__":
    demo = create_demo()
    demo.launch(
        share=False,
        server_name="0.0.0.0",
        server_port=7861,
        show_error=True
    )
